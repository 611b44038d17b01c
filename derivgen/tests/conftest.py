"""
Pytest fixtures for derivgen tests.
"""

import logging
import os

import pytest


ORIENTATION_TAG = 0x0112


def write_image(path, size=(400, 300), colors=('red', 'blue'), orientation=None, split='vertical'):
    """
    Write a two-colour image to `path`.

    With split='vertical' the left half gets colors[0] and the right half
    colors[1]; with split='horizontal' the top half gets colors[0].
    """
    from PIL import Image

    img = Image.new('RGB', size, color=colors[0])
    width, height = size
    if split == 'vertical':
        img.paste(Image.new('RGB', (width - width // 2, height), color=colors[1]), (width // 2, 0))
    else:
        img.paste(Image.new('RGB', (width, height - height // 2), color=colors[1]), (0, height // 2))

    kwargs = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[ORIENTATION_TAG] = orientation
        kwargs['exif'] = exif.tobytes()
    img.save(path, format='JPEG', quality=95, **kwargs)
    return str(path)


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def gallery_dir(tmp_path):
    """Fixture providing a gallery directory with thumbnails/ and previews/."""
    gallery = tmp_path / 'g1'
    (gallery / 'thumbnails').mkdir(parents=True)
    (gallery / 'previews').mkdir()
    return gallery


@pytest.fixture
def sample_image(gallery_dir):
    """Fixture providing a 400x300 JPEG inside the gallery."""
    return write_image(gallery_dir / 'photo1.jpg')


@pytest.fixture
def make_payload(gallery_dir):
    """Fixture returning a factory for payloads rooted in the gallery."""
    from derivgen.job import JobPayload

    def _make(source=None, filename='photo1', extension='jpg', user_fullname='alice'):
        return JobPayload(
            full_size_image_path=source or os.path.join(str(gallery_dir), f'{filename}.{extension}'),
            gallery_path=str(gallery_dir),
            filename=filename,
            extension=extension,
            user_id='cid-alice',
            gallery_id='g1',
            user_fullname=user_fullname,
        )

    return _make


@pytest.fixture
def job_store(logger):
    """Fixture providing an in-memory job store with a controllable clock."""
    from derivgen.memory_stores import MemoryJobStore

    clock = {'now': 1000.0}
    store = MemoryJobStore(clock=lambda: clock['now'], logger=logger)
    store.test_clock = clock
    return store


@pytest.fixture
def metadata_store(logger):
    """Fixture providing an in-memory metadata store."""
    from derivgen.memory_stores import MemoryDerivativeStore
    return MemoryDerivativeStore(logger=logger)


@pytest.fixture
def engine(logger):
    """Fixture providing a transform engine with a small cache."""
    from derivgen.decode_cache import DecodeCache
    from derivgen.transform_engine import TransformEngine
    return TransformEngine(cache=DecodeCache(64 * 1024 * 1024, logger=logger), logger=logger)


@pytest.fixture
def orchestrator(engine, metadata_store, job_store, logger):
    """Fixture providing an orchestrator wired to the in-memory stores."""
    from derivgen.orchestrator import TaskOrchestrator

    orch = TaskOrchestrator(engine, metadata_store, job_store, logger=logger)
    yield orch
    orch.shutdown()


@pytest.fixture
def mock_pool(mocker):
    """Fixture providing a MySQLPool stand-in with one mocked cursor/connection."""
    cursor = mocker.MagicMock()
    connection = mocker.MagicMock()
    pool = mocker.MagicMock()
    pool.get_cursor.return_value = (cursor, connection)
    pool.test_cursor = cursor
    pool.test_connection = connection
    return pool


@pytest.fixture
def make_image():
    """Fixture returning the two-colour image writer."""
    return write_image
