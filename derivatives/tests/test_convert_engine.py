"""Tests for ConvertEngine."""

from unittest.mock import MagicMock

import pytest
import sh

from derivatives.convert_engine import ConvertEngine
from derivatives.pipeline import (
    ColorAdjust, CompositeImage, DrawText, OutputHints,
    ResizeAndCrop, ResizeAndPad, ResizeToFit, SetQuality,
)


class TestBuildArgs:
    """Tests for operation to convert argument translation."""

    def test_recrop(self):
        args = ConvertEngine().build_args([ResizeAndCrop(200, 200, 'Center', 0, 0), SetQuality(80)])

        assert args == [
            '-resize', '200x200^', '-gravity', 'Center', '-crop', '200x200+0+0', '+repage',
            '-quality', '80',
        ]

    def test_recrop_negative_offset(self):
        args = ConvertEngine().build_args([ResizeAndCrop(50, 40, 'East', -3, 7)])

        assert '50x40-3+7' in args

    def test_resize_with_options(self):
        assert ConvertEngine().build_args([ResizeToFit(640, 480, '>')]) == ['-resize', '640x480>']
        assert ConvertEngine().build_args([ResizeToFit(640, 480)]) == ['-resize', '640x480']

    def test_fill(self):
        args = ConvertEngine().build_args([ResizeAndPad(100, 80, 'South', 'black')])

        assert args == [
            '-resize', '100x80', '-background', 'black', '-gravity', 'South', '-extent', '100x80',
        ]

    def test_optimize(self):
        args = ConvertEngine().build_args([OutputHints(), ColorAdjust(1.1, 102, 110, 100)])

        assert args == [
            '-interlace', 'Plane', '-sampling-factor', '4:2:0', '-strip',
            '-gamma', '1.1', '-modulate', '102,110,100',
        ]

    def test_text(self):
        args = ConvertEngine().build_args([DrawText('hello', 'red', 12, 'SouthEast', 'Arial', 10, 5)])

        assert args == [
            '-gravity', 'SouthEast', '-fill', 'red', '-pointsize', '12', '-font', 'Arial',
            '-annotate', '+10+5', 'hello',
        ]

    def test_composite(self):
        args = ConvertEngine().build_args([CompositeImage('/srv/logo.png', 'NorthWest', '32x32+4+4')])

        assert args == ['/srv/logo.png', '-gravity', 'NorthWest', '-geometry', '32x32+4+4', '-composite']

    def test_unsupported_operation(self):
        with pytest.raises(TypeError):
            ConvertEngine().build_args(['blur'])


class TestRender:
    """Tests for invoking convert through sh."""

    def test_render_invokes_convert(self, mocker):
        command = MagicMock()
        factory = mocker.patch('derivatives.convert_engine.sh.Command', return_value=command)

        ConvertEngine('magick').render([SetQuality(90)], '/in.jpg', '/out.jpg')

        factory.assert_called_once_with('magick')
        command.assert_called_once_with('/in.jpg', '-quality', '90', '/out.jpg')

    def test_missing_command(self, mocker):
        mocker.patch('derivatives.convert_engine.sh.Command', side_effect=sh.CommandNotFound('convert'))

        with pytest.raises(RuntimeError, match='not found'):
            ConvertEngine().render([], '/in.jpg', '/out.jpg')

    def test_non_zero_exit(self, mocker):
        error = sh.ErrorReturnCode_1('convert /in.jpg /out.jpg', b'', b'convert: no decode delegate')
        command = MagicMock(side_effect=error)
        mocker.patch('derivatives.convert_engine.sh.Command', return_value=command)

        with pytest.raises(RuntimeError, match='no decode delegate'):
            ConvertEngine().render([], '/in.jpg', '/out.jpg')
