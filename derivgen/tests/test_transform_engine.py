"""Tests for TransformEngine class."""

import threading

import pytest
from PIL import Image

from derivgen.errors import TransformError
from derivgen.transform_engine import TransformEngine


def is_red(pixel):
    r, g, b = pixel[:3]
    return r > 180 and g < 80 and b < 80


def is_blue(pixel):
    r, g, b = pixel[:3]
    return b > 180 and r < 80 and g < 80


class TestThumbnail:
    """Tests for thumbnail generation."""

    @pytest.mark.parametrize('size', [(400, 300), (300, 900), (1200, 200), (50, 40), (300, 200)])
    def test_always_300_by_200(self, engine, tmp_path, make_image, size):
        """Thumbnail is 300x200 whatever the source aspect ratio."""
        source = make_image(tmp_path / 'src.jpg', size=size)
        dest = str(tmp_path / 'thumb.jpg')

        assert engine.make_thumbnail(source, dest) == (300, 200)

        with Image.open(dest) as result:
            assert result.size == (300, 200)

    def test_orientation_applied_before_resize(self, engine, tmp_path, make_image):
        """A source tagged 'rotate 90' produces an upright thumbnail."""
        # Stored landscape, left red / right blue; orientation 6 rotates 90 clockwise
        # so the displayed image is portrait with red on top.
        source = make_image(tmp_path / 'src.jpg', size=(600, 400), orientation=6)
        dest = str(tmp_path / 'thumb.jpg')

        engine.make_thumbnail(source, dest)

        with Image.open(dest) as result:
            rgb = result.convert('RGB')
            assert result.size == (300, 200)
            assert is_red(rgb.getpixel((150, 10)))
            assert is_blue(rgb.getpixel((150, 190)))

    def test_missing_source(self, engine, tmp_path):
        with pytest.raises(TransformError):
            engine.make_thumbnail(str(tmp_path / 'missing.jpg'), str(tmp_path / 'thumb.jpg'))

    def test_corrupt_source(self, engine, tmp_path):
        source = tmp_path / 'corrupt.jpg'
        source.write_bytes(b'not an image')

        with pytest.raises(TransformError):
            engine.make_thumbnail(str(source), str(tmp_path / 'thumb.jpg'))

    def test_unwritable_destination(self, engine, sample_image, tmp_path):
        with pytest.raises(TransformError):
            engine.make_thumbnail(sample_image, str(tmp_path / 'no-such-dir' / 'thumb.jpg'))

    def test_png_keeps_format(self, engine, tmp_path):
        source = tmp_path / 'src.png'
        Image.new('RGBA', (400, 300), color=(255, 0, 0, 128)).save(source)
        dest = str(tmp_path / 'thumb.png')

        engine.make_thumbnail(str(source), dest)

        with Image.open(dest) as result:
            assert result.format == 'PNG'
            assert result.size == (300, 200)


class TestEntropyCrop:
    """Tests for the entropy crop window."""

    def _half_detailed(self, size, detailed_box):
        img = Image.new('L', size, color=128)
        box_w = detailed_box[2] - detailed_box[0]
        box_h = detailed_box[3] - detailed_box[1]
        detail = Image.linear_gradient('L').resize((box_w, box_h))
        img.paste(detail, detailed_box[:2])
        return img.convert('RGB')

    def test_picks_detailed_region_horizontally(self):
        img = self._half_detailed((600, 200), (300, 0, 600, 200))

        assert TransformEngine.entropy_offset(img, (300, 200)) == (300, 0)

    def test_picks_detailed_region_vertically(self):
        img = self._half_detailed((300, 500), (0, 0, 300, 200))

        assert TransformEngine.entropy_offset(img, (300, 200)) == (0, 0)

    def test_flat_image_uses_first_window(self):
        img = Image.new('RGB', (500, 200), color='gray')

        assert TransformEngine.entropy_offset(img, (300, 200)) == (0, 0)

    def test_exact_fit(self):
        img = Image.new('RGB', (300, 200))

        assert TransformEngine.entropy_offset(img, (300, 200)) == (0, 0)

    def test_thumbnail_keeps_detailed_side(self, engine, tmp_path):
        source = tmp_path / 'src.png'
        self._half_detailed((900, 300), (450, 0, 900, 300)).save(source)
        dest = str(tmp_path / 'thumb.png')

        engine.make_thumbnail(str(source), dest)

        with Image.open(dest) as result:
            assert result.convert('L').entropy() > 4


class TestPreview:
    """Tests for preview generation."""

    @pytest.mark.parametrize('size,expected', [
        ((400, 300), (1067, 800)),
        ((300, 900), (267, 800)),
        ((2000, 1000), (1600, 800)),
    ])
    def test_height_800_width_proportional(self, engine, tmp_path, make_image, size, expected):
        source = make_image(tmp_path / 'src.jpg', size=size)
        dest = str(tmp_path / 'preview.jpg')

        assert engine.make_preview(source, dest) == expected

        with Image.open(dest) as result:
            assert result.size == expected

    def test_orientation_swaps_dimensions(self, engine, tmp_path, make_image):
        """400x300 stored with orientation 6 is a 300x400 portrait."""
        source = make_image(tmp_path / 'src.jpg', size=(400, 300), orientation=6)
        dest = str(tmp_path / 'preview.jpg')

        assert engine.make_preview(source, dest) == (600, 800)

    def test_missing_source(self, engine, tmp_path):
        with pytest.raises(TransformError):
            engine.make_preview(str(tmp_path / 'missing.jpg'), str(tmp_path / 'preview.jpg'))


class TestResourcePolicy:
    """Tests for the decode cache and the transform cap."""

    def test_both_renditions_share_one_decode(self, engine, sample_image, tmp_path):
        engine.make_thumbnail(sample_image, str(tmp_path / 't.jpg'))
        engine.make_preview(sample_image, str(tmp_path / 'p.jpg'))

        assert engine.cache.misses == 1
        assert engine.cache.hits == 1

    def test_transform_cap(self, sample_image, tmp_path, mocker, logger):
        """No more than max_concurrent transforms run at once."""
        engine = TransformEngine(max_concurrent=2, logger=logger)
        lock = threading.Lock()
        state = {'running': 0, 'peak': 0}
        real_save = engine._save

        def slow_save(img, dest):
            with lock:
                state['running'] += 1
                state['peak'] = max(state['peak'], state['running'])
            threading.Event().wait(0.05)
            real_save(img, dest)
            with lock:
                state['running'] -= 1

        mocker.patch.object(engine, '_save', side_effect=slow_save)
        threads = [
            threading.Thread(target=engine.make_preview, args=(sample_image, str(tmp_path / f'p{i}.jpg')))
            for i in range(6)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert state['peak'] == 2

    def test_output_format(self, engine):
        assert engine.output_format('a.jpg') == 'JPEG'
        assert engine.output_format('a.JPEG') == 'JPEG'
        assert engine.output_format('a.tiff') == 'JPEG'
        assert engine.output_format('a.png') == 'PNG'
        assert engine.output_format('a.gif') == 'GIF'
        assert engine.output_format('a.unknown') == 'JPEG'
