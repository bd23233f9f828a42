"""Tests for PackageConfig and PackageRegistry."""

import json

import pytest

from derivatives.errors import ConfigurationError, UnknownPackage
from derivatives.package_config import PackageConfig, WatermarkImage, WatermarkText, parse_geometry
from derivatives.package_registry import PackageRegistry


class TestPackageConfig:
    """Tests for PackageConfig validation."""

    def test_defaults(self):
        """Test defaults for optional fields."""
        pkg = PackageConfig.from_dict('thumb', {'type': 'recrop', 'width': 200, 'height': 200})

        assert pkg.quality == 80
        assert pkg.gravity == 'Center'
        assert (pkg.x, pkg.y) == (0, 0)
        assert pkg.color == 'white'
        assert pkg.force_type is None
        assert pkg.optimize == 0
        assert pkg.watermark is None

    def test_missing_type(self):
        with pytest.raises(ConfigurationError, match='missing type'):
            PackageConfig.from_dict('thumb', {'width': 200, 'height': 200})

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match='unknown type'):
            PackageConfig.from_dict('thumb', {'type': 'blur'})

    @pytest.mark.parametrize('pkg_type', ['resize', 'recrop', 'fill'])
    def test_sized_types_require_dimensions(self, pkg_type):
        with pytest.raises(ConfigurationError, match='requires width and height'):
            PackageConfig.from_dict('p', {'type': pkg_type, 'width': 100})

    def test_original_needs_no_dimensions(self):
        pkg = PackageConfig.from_dict('orig', {'type': 'original', 'quality': 60})

        assert pkg.width is None
        assert pkg.quality == 60
        assert not pkg.is_sized

    def test_quality_out_of_range(self):
        with pytest.raises(ConfigurationError, match='quality'):
            PackageConfig.from_dict('p', {'type': 'original', 'quality': 101})

    def test_chained_definition_rejected(self):
        with pytest.raises(ConfigurationError, match='chained'):
            PackageConfig.from_dict('p', [{'type': 'original'}, {'type': 'original'}])

    @pytest.mark.parametrize('name', ['', 'my-thumb', 'thumb.small', 'a/b'])
    def test_reserved_characters_in_name(self, name):
        with pytest.raises(ConfigurationError, match='Invalid package name'):
            PackageConfig.from_dict(name, {'type': 'original'})

    def test_gravity_is_case_insensitive(self):
        pkg = PackageConfig.from_dict('p', {'type': 'recrop', 'width': 1, 'height': 1, 'gravity': 'northeast'})
        assert pkg.gravity == 'NorthEast'

    def test_unknown_gravity(self):
        with pytest.raises(ConfigurationError, match='gravity'):
            PackageConfig.from_dict('p', {'type': 'recrop', 'width': 1, 'height': 1, 'gravity': 'Middle'})

    def test_camel_case_force_type(self):
        pkg = PackageConfig.from_dict('p', {'type': 'original', 'forceType': 'JPG'})

        assert pkg.force_type == 'jpg'
        assert pkg.output_extension('png') == 'jpg'

    def test_output_extension_without_override(self):
        pkg = PackageConfig.from_dict('p', {'type': 'original'})
        assert pkg.output_extension('png') == 'png'

    def test_text_watermark(self):
        pkg = PackageConfig.from_dict('p', {
            'type': 'original',
            'watermark': {'textColor': 'red', 'textSize': 12, 'gravity': 'North', 'position': '+5+7'},
        })

        assert pkg.watermark == WatermarkText(text_color='red', text_size=12, gravity='North', position=(5, 7))

    def test_image_watermark(self):
        pkg = PackageConfig.from_dict('p', {
            'type': 'original',
            'watermark': {'src': 'logo.png', 'geometry': '32x32+4+4'},
        })

        assert isinstance(pkg.watermark, WatermarkImage)
        assert pkg.watermark.src == 'logo.png'
        assert pkg.watermark.gravity == 'SouthEast'

    def test_invalid_geometry(self):
        with pytest.raises(ConfigurationError, match='geometry'):
            PackageConfig.from_dict('p', {'type': 'original', 'watermark': {'src': 'a.png', 'geometry': 'big'}})


class TestParseGeometry:

    def test_offsets_only(self):
        assert parse_geometry('+10-5') == (None, None, 10, -5)

    def test_size_and_offsets(self):
        assert parse_geometry('64x32+1+2') == (64, 32, 1, 2)

    def test_pair(self):
        assert parse_geometry([3, 4]) == (None, None, 3, 4)

    def test_empty(self):
        assert parse_geometry(None) == (None, None, 0, 0)


class TestPackageRegistry:
    """Tests for PackageRegistry."""

    def test_resolve(self, registry):
        pkg = registry.resolve('thumb')

        assert pkg.name == 'thumb'
        assert pkg.type == 'recrop'

    def test_resolve_unknown(self, registry):
        with pytest.raises(UnknownPackage) as exc_info:
            registry.resolve('huge')

        assert str(exc_info.value) == 'pkg definition missing for huge'

    def test_contains_and_names(self, registry):
        assert 'thumb' in registry
        assert 'huge' not in registry
        assert set(registry.names()) == {'thumb', 'full', 'square', 'forced'}
        assert len(registry) == 4

    def test_invalid_definition_fails_whole_load(self, package_definitions):
        package_definitions['broken'] = {'width': 10}

        with pytest.raises(ConfigurationError):
            PackageRegistry.from_definitions(package_definitions)

    def test_is_read_only(self, registry):
        with pytest.raises(TypeError):
            registry._packages['new'] = None

    def test_load_json(self, tmp_path):
        path = tmp_path / 'packages.json'
        path.write_text(json.dumps({'packages': {'thumb': {'type': 'recrop', 'width': 50, 'height': 50}}}))

        registry = PackageRegistry.load(str(path))

        assert registry.resolve('thumb').width == 50

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PackageRegistry.load(str(tmp_path / 'missing.json'))
