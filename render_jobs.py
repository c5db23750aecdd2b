#!/usr/bin/env python3
"""
Render batches for a whole world save

Every chunk render (viewport and full-save modes) or region stitch (optimize
mode) is one task on a thread pool. The thread that starts a batch never
waits on a single task; it calls poll() to collect whatever has finished.

Usage:
    anvil-map path/to/save viewport -2 -2 2 2
    anvil-map path/to/save all
    anvil-map path/to/save optimize
"""
import argparse
import logging
import os
import sys
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from pathlib import Path

from tqdm import tqdm

from block_textures import ASSET_DIR, TextureCache
from region_io import REGION_CHUNKS, open_region
from render_map import stitch_region
from tile_cache import render_chunk_at, render_if_stale
from tile_files import OUTPUT_ROOT

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = os.cpu_count() or 4


def region_paths(save_path):
    """All region files of a save, sorted by name"""
    region_dir = Path(save_path) / "region"
    if not region_dir.is_dir():
        return []
    return sorted(path for path in region_dir.iterdir() if path.suffix == ".mca")


def chunk_range(start_x, start_z, end_x, end_z):
    """Absolute chunk coordinates of a rectangle, both corners inclusive"""
    return [
        (chunk_x, chunk_z)
        for chunk_x in range(start_x, end_x + 1)
        for chunk_z in range(start_z, end_z + 1)
    ]


def stored_chunks(region):
    """Region-local coordinates of every chunk the region header lists"""
    return [
        (chunk_x, chunk_z)
        for chunk_x in range(REGION_CHUNKS)
        for chunk_z in range(REGION_CHUNKS)
        if region.has_chunk(chunk_x, chunk_z)
    ]


def render_region_chunk(region, chunk_x, chunk_z, save_name, cache, output_root=OUTPUT_ROOT, asset_dir=ASSET_DIR):
    """
    Decode and render one chunk of an open region

    The decoded chunk is dropped once its tile is written.

    Returns: tile path, or None if the chunk is missing or not fully generated
    """
    chunk = region.read_chunk(chunk_x, chunk_z)
    if chunk is None:
        return None
    return render_if_stale(chunk, region, save_name, cache, output_root, asset_dir)


def render_all_chunks_in_region(region_path, save_name, cache, output_root=OUTPUT_ROOT, asset_dir=ASSET_DIR):
    """
    Render every fully generated chunk of one region, one after the other

    A chunk that fails to decode or render is logged and skipped.

    Returns: list of tile paths
    """
    region = open_region(region_path)
    paths = []
    for chunk_x, chunk_z in stored_chunks(region):
        try:
            path = render_region_chunk(region, chunk_x, chunk_z, save_name, cache, output_root, asset_dir)
        except Exception:
            logger.exception("Failed to render chunk (%d, %d) of %s", chunk_x, chunk_z, region.filename)
            continue
        if path is not None:
            paths.append(path)
    return paths


class MapRenderer:
    """
    Dispatches render work for one world save onto a worker pool

    Attributes:
        rendering_count: tasks submitted but not yet collected by poll()
        loading: True while rendering_count is above zero
        on_result: optional callback receiving each task's path (or None)
        cache: TextureCache of the most recently started batch
    """

    def __init__(self, save_path, output_root=OUTPUT_ROOT, asset_dir=ASSET_DIR,
                 workers=DEFAULT_WORKERS, on_result=None):
        self.save_path = Path(save_path)
        self.save_name = self.save_path.name
        self.output_root = Path(output_root)
        self.asset_dir = Path(asset_dir)
        self.on_result = on_result
        self.rendering_count = 0
        self.loading = False
        self.cache = None
        self._pending = []
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="render")

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.shutdown()

    def shutdown(self):
        self._executor.shutdown(wait=True)

    def _submit(self, fn, *args):
        self._pending.append(self._executor.submit(fn, *args))
        self.rendering_count += 1
        self.loading = True

    def render_viewport(self, chunk_coords):
        """Queue a render of each absolute (chunk_x, chunk_z)"""
        cache = self.cache = TextureCache()
        for chunk_x, chunk_z in chunk_coords:
            self._submit(render_chunk_at, self.save_path, chunk_x, chunk_z, cache,
                         self.output_root, self.asset_dir)

    def render_all(self):
        """
        Queue a render of every chunk stored in the save

        Only region headers are read here; each task decodes its own chunk
        and skips it unless fully generated. An unreadable region is logged
        and the remaining regions are still queued.
        """
        cache = self.cache = TextureCache()
        for path in region_paths(self.save_path):
            try:
                region = open_region(path)
                coords = stored_chunks(region)
            except Exception:
                logger.exception("Could not read region %s", path.name)
                continue
            for chunk_x, chunk_z in coords:
                self._submit(render_region_chunk, region, chunk_x, chunk_z, self.save_name, cache,
                             self.output_root, self.asset_dir)

    def optimize(self):
        """Queue one stitch per rendered region directory"""
        save_dir = self.output_root / self.save_name
        if not save_dir.is_dir():
            logger.warning("Nothing rendered yet in %s", save_dir)
            return
        for region_dir in sorted(save_dir.iterdir()):
            if region_dir.is_dir():
                self._submit(stitch_region, region_dir)

    def poll(self):
        """
        Collect finished tasks

        Failed tasks are logged and reported as None; they never stop the
        rest of the batch.

        Returns: list of results (path or None) collected by this call
        """
        finished = [future for future in self._pending if future.done()]
        results = []
        for future in finished:
            self._pending.remove(future)
            try:
                path = future.result()
            except Exception:
                logger.exception("Render task failed")
                path = None
            self.rendering_count -= 1
            results.append(path)
            if self.on_result is not None:
                self.on_result(path)

        if self.rendering_count == 0 and self.loading:
            self.loading = False
            if self.cache is not None:
                logger.debug("Batch finished with %d textures decoded", len(self.cache))
        return results

    def wait(self, poll_interval=0.1):
        """Poll until every queued task has been collected"""
        results = []
        while self.rendering_count > 0:
            wait(self._pending, timeout=poll_interval, return_when=FIRST_COMPLETED)
            results.extend(self.poll())
        return results


def main(argv=None):
    parser = argparse.ArgumentParser(description="Render a Minecraft world save to top-down map tiles")
    parser.add_argument("save", help="world save directory (containing region/)")
    parser.add_argument("--assets", default=ASSET_DIR, help="block texture directory")
    parser.add_argument("--output", default=OUTPUT_ROOT, help="directory tiles are written to")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="worker threads")
    parser.add_argument("-v", "--verbose", action="store_true", help="log per block diagnostics")
    modes = parser.add_subparsers(dest="mode", required=True)

    viewport = modes.add_parser("viewport", help="render a rectangle of chunks (corners inclusive)")
    for name in ("start_x", "start_z", "end_x", "end_z"):
        viewport.add_argument(name, type=int)
    modes.add_parser("all", help="render every chunk of the save")
    modes.add_parser("optimize", help="stitch rendered tiles into one image per region")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if not region_paths(args.save):
        print(f"Error: no region files found in {Path(args.save) / 'region'}")
        return 1

    with MapRenderer(args.save, args.output, args.assets, args.workers) as renderer:
        if args.mode == "viewport":
            renderer.render_viewport(chunk_range(args.start_x, args.start_z, args.end_x, args.end_z))
        elif args.mode == "all":
            renderer.render_all()
        else:
            renderer.optimize()

        with tqdm(total=renderer.rendering_count, unit="tile") as progress:
            renderer.on_result = lambda path: progress.update(1)
            results = renderer.wait()

    rendered = [path for path in results if path is not None]
    print(f"Rendered {len(rendered)} of {len(results)} requested tiles")
    print(f"Output in {Path(args.output) / Path(args.save).name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
