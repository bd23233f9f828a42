# Named transform packages served under /image/{id}-{package}.{ext}.
# Set PACKAGES_FILE to a JSON file to replace these definitions.
#
# Keys: type (resize, recrop, fill, original), width, height, quality,
# gravity, x, y, color, force_type, optimize (1 or 2), options, watermark.

PACKAGES = {
    'thumb': {
        'type': 'recrop',
        'width': 200,
        'height': 200,
        'gravity': 'Center',
        'quality': 80,
    },
    # 'preview': {'type': 'resize', 'width': 1024, 'height': 1024, 'options': '>'},
    # 'square': {'type': 'fill', 'width': 400, 'height': 400, 'color': 'white'},
    # 'marked': {'type': 'resize', 'width': 800, 'height': 800,
    #            'watermark': {'text_color': 'white', 'text_size': 18, 'gravity': 'SouthEast'}},
}
