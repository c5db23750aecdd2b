import logging
import threading
import zlib

import pytest

import render_jobs
from render_jobs import MapRenderer, chunk_range, main, region_paths
from tests.test_utils import FakeChunk, FakeRegion


def test_chunk_range_is_inclusive():
    assert chunk_range(-1, 0, 0, 1) == [(-1, 0), (-1, 1), (0, 0), (0, 1)]


def test_region_paths(tmp_path):
    region_dir = tmp_path / "region"
    region_dir.mkdir()
    for name in ["r.1.0.mca", "r.0.0.mca", "session.lock"]:
        (region_dir / name).touch()

    assert [path.name for path in region_paths(tmp_path)] == ["r.0.0.mca", "r.1.0.mca"]
    assert region_paths(tmp_path / "missing") == []


def test_viewport_batch_collects_every_result(tmp_path, monkeypatch):
    caches = []
    lock = threading.Lock()

    def fake_render(save_path, chunk_x, chunk_z, cache, output_root, asset_dir):
        with lock:
            caches.append(cache)
        if chunk_x == 1:
            raise FileNotFoundError("no texture directory")
        if chunk_z == 1:
            return None
        return f"chunk{chunk_x}.{chunk_z}"

    monkeypatch.setattr(render_jobs, "render_chunk_at", fake_render)
    seen = []

    with MapRenderer(tmp_path / "world", workers=4, on_result=seen.append) as renderer:
        renderer.render_viewport(chunk_range(0, 0, 2, 1))
        assert renderer.loading
        assert renderer.rendering_count == 6
        results = renderer.wait()

    assert renderer.rendering_count == 0
    assert not renderer.loading
    assert sorted(path for path in results if path) == ["chunk0.0", "chunk2.0"]
    assert results.count(None) == 4
    assert len(seen) == 6
    assert len({id(cache) for cache in caches}) == 1


def test_each_batch_gets_a_new_texture_cache(tmp_path, monkeypatch):
    caches = []
    monkeypatch.setattr(render_jobs, "render_chunk_at", lambda *args: caches.append(args[3]))

    with MapRenderer(tmp_path, workers=2) as renderer:
        renderer.render_viewport([(0, 0), (0, 1)])
        renderer.render_viewport([(0, 0)])
        renderer.wait()

    assert len({id(cache) for cache in caches}) == 2


def fake_render_if_stale(rendered):
    def render(chunk, *args):
        if chunk.status() != "full":
            return None
        rendered.append((chunk.x, chunk.z))
        return f"{chunk.x}.{chunk.z}"
    return render


def test_render_all_skips_ungenerated_chunks(tmp_path, monkeypatch):
    (tmp_path / "world" / "region").mkdir(parents=True)
    region_path = tmp_path / "world" / "region" / "r.0.0.mca"
    region_path.touch()
    region = FakeRegion(region_path, chunks={
        (0, 0): FakeChunk(x=0, z=0),
        (0, 1): FakeChunk(x=0, z=1, status="carvers"),
        (5, 5): FakeChunk(x=5, z=5),
    })
    monkeypatch.setattr(render_jobs, "open_region", lambda path: region)
    rendered = []
    monkeypatch.setattr(render_jobs, "render_if_stale", fake_render_if_stale(rendered))

    with MapRenderer(tmp_path / "world", workers=2) as renderer:
        renderer.render_all()
        results = renderer.wait()

    assert sorted(rendered) == [(0, 0), (5, 5)]
    assert sorted(path for path in results if path) == ["0.0", "5.5"]


def test_render_all_isolates_corrupt_chunks_and_regions(tmp_path, monkeypatch):
    region_dir = tmp_path / "world" / "region"
    region_dir.mkdir(parents=True)
    for name in ["r.0.0.mca", "r.1.0.mca", "r.2.0.mca"]:
        (region_dir / name).touch()
    regions = {
        "r.0.0.mca": FakeRegion(region_dir / "r.0.0.mca", chunks={
            (0, 0): FakeChunk(x=0, z=0),
            (0, 1): zlib.error("Error -3 while decompressing data"),
            (5, 5): FakeChunk(x=5, z=5),
        }),
        "r.2.0.mca": FakeRegion(region_dir / "r.2.0.mca", chunks={
            (1, 1): FakeChunk(x=1, z=1),
            (2, 2): FakeChunk(x=2, z=2),
        }),
    }

    def fake_open_region(path):
        if path.name not in regions:
            raise ValueError("truncated region header")
        return regions[path.name]

    monkeypatch.setattr(render_jobs, "open_region", fake_open_region)
    rendered = []
    monkeypatch.setattr(render_jobs, "render_if_stale", fake_render_if_stale(rendered))

    with MapRenderer(tmp_path / "world", workers=2) as renderer:
        renderer.render_all()
        assert renderer.rendering_count == 5
        results = renderer.wait()

    assert sorted(rendered) == [(0, 0), (1, 1), (2, 2), (5, 5)]
    assert results.count(None) == 1
    assert not renderer.loading


def test_optimize_stitches_each_region_directory(tmp_path, monkeypatch):
    for name in ["r.0.0", "r.-1.0"]:
        (tmp_path / "saves" / "world" / name).mkdir(parents=True)
    monkeypatch.setattr(render_jobs, "stitch_region", lambda directory: directory.name)

    with MapRenderer(tmp_path / "world", output_root=tmp_path / "saves", workers=2) as renderer:
        renderer.optimize()
        results = renderer.wait()

    assert sorted(results) == ["r.-1.0", "r.0.0"]


def test_optimize_without_tiles_queues_nothing(tmp_path):
    with MapRenderer(tmp_path / "world", output_root=tmp_path / "saves") as renderer:
        renderer.optimize()
        assert not renderer.loading
        assert renderer.wait() == []


def test_render_all_chunks_in_region(tmp_path, monkeypatch):
    region = FakeRegion(tmp_path / "r.0.0.mca", chunks={
        (1, 2): FakeChunk(x=1, z=2),
        (2, 2): zlib.error("incorrect header check"),
        (3, 4): FakeChunk(x=3, z=4, status="features"),
    })
    monkeypatch.setattr(render_jobs, "open_region", lambda path: region)
    monkeypatch.setattr(render_jobs, "render_if_stale",
                        lambda chunk, *args: None if chunk.status() != "full" else f"{chunk.x}.{chunk.z}")

    assert render_jobs.render_all_chunks_in_region(region.path, "world", None) == ["1.2"]


def test_main_rejects_save_without_regions(tmp_path, capsys):
    assert main([str(tmp_path), "all"]) == 1
    assert "no region files" in capsys.readouterr().out


def test_main_viewport(tmp_path, monkeypatch, capsys):
    (tmp_path / "world" / "region").mkdir(parents=True)
    (tmp_path / "world" / "region" / "r.0.0.mca").touch()
    monkeypatch.setattr(render_jobs, "render_chunk_at",
                        lambda save_path, chunk_x, chunk_z, *args: f"{chunk_x}.{chunk_z}" if chunk_x == 0 else None)

    code = main([str(tmp_path / "world"), "--output", str(tmp_path / "saves"), "--workers", "2",
                 "viewport", "0", "0", "1", "1"])

    assert code == 0
    assert "Rendered 2 of 4 requested tiles" in capsys.readouterr().out


@pytest.mark.parametrize("mode", [["viewport", "0"], ["bogus"]])
def test_main_bad_arguments(tmp_path, mode):
    with pytest.raises(SystemExit):
        main([str(tmp_path)] + mode)


def test_finished_batch_logs_decoded_texture_count(tmp_path, monkeypatch, caplog):
    def fake_render(save_path, chunk_x, chunk_z, cache, output_root, asset_dir):
        return cache.get_or_create(f"block{chunk_x}", lambda: "image")

    monkeypatch.setattr(render_jobs, "render_chunk_at", fake_render)

    with caplog.at_level(logging.DEBUG, logger="render_jobs"):
        with MapRenderer(tmp_path, workers=2) as renderer:
            renderer.render_viewport(chunk_range(0, 0, 1, 1))
            renderer.wait()

    assert "Batch finished with 2 textures decoded" in caplog.text
