"""CLI for repairing raw kernel LUT dumps offline."""

import argparse
import logging
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image
from tqdm import tqdm

from lenslut.core import (
    LutBuffer,
    RepairConfig,
    RepairPolicy,
    EdgePolicy,
    LutRepairEngine,
    LutError,
    CellStatus,
)
from lenslut.codecs import LutCodec

# Preview colours per CellStatus code
_STATUS_COLORS = np.array(
    [
        [0, 0, 0],        # VALID
        [255, 200, 0],    # SOFT
        [255, 0, 0],      # HARD
    ],
    dtype=np.uint8,
)


def _load_raw(path: Path) -> LutBuffer:
    """Load a raw [H, W, 4] dump or a LutCodec file."""
    data = np.load(path, allow_pickle=True)
    if data.dtype == object:
        return LutCodec.decode(data.item())["buffer"]
    return LutBuffer.from_raw(data)


def _save_preview(path: Path, before: LutBuffer, after: LutBuffer) -> None:
    """Side-by-side status map: before | after repair."""
    path.parent.mkdir(parents=True, exist_ok=True)
    codes = np.concatenate([before.status, after.status], axis=1)
    codes = np.clip(codes, 0, len(_STATUS_COLORS) - 1)
    Image.fromarray(_STATUS_COLORS[codes]).save(path)


def repair_file(
    src: Path,
    dst: Path,
    cfg: RepairConfig,
    preview: Optional[Path] = None,
    compress: bool = False,
) -> dict:
    buffer = _load_raw(src)
    before = buffer.copy()
    report = LutRepairEngine(cfg).repair(buffer)

    dst.parent.mkdir(parents=True, exist_ok=True)
    LutCodec.save(
        dst,
        buffer,
        meta={"source": str(src), "policy": cfg.policy.value, "runs": report.num_runs},
        compress=compress,
    )
    if preview is not None:
        _save_preview(preview, before, buffer)

    return {
        "file": str(src),
        "failed_before": before.num_failed(cfg.failure),
        "repaired": report.repaired_cells,
        "runs": report.num_runs,
        "skipped": len(report.skipped_runs),
        "remaining": int(np.sum(buffer.status != CellStatus.VALID)),
    }


def main():
    parser = argparse.ArgumentParser(description="Repair failed cells in raw lensing LUT dumps")
    parser.add_argument("inputs", type=Path, nargs="+", help="Raw [H, W, 4] .npy LUT dumps")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output directory")
    parser.add_argument("-c", "--config", type=Path, default=None, help="YAML repair configuration")
    parser.add_argument("--policy", type=str, default=None, choices=["linear", "spline"], help="Override repair policy")
    parser.add_argument("--edge-policy", type=str, default=None, choices=["raise", "skip", "clamp"], help="Override edge policy")
    parser.add_argument("--preview", action="store_true", help="Write PNG status previews next to outputs")
    parser.add_argument("--compress", action="store_true", help="Store coordinates as float16")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-line error counts")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    cfg = RepairConfig.from_yaml(args.config) if args.config else RepairConfig()
    if args.policy:
        cfg.policy = RepairPolicy(args.policy)
    if args.edge_policy:
        cfg.edge_policy = EdgePolicy(args.edge_policy)

    results, errors = [], []
    iterator = tqdm(args.inputs, desc="Repairing") if not args.no_progress else args.inputs
    for src in iterator:
        dst = args.output / f"{src.stem}_repaired.npy"
        preview = args.output / f"{src.stem}_status.png" if args.preview else None
        try:
            results.append(repair_file(src, dst, cfg, preview=preview, compress=args.compress))
        except (LutError, ValueError, OSError) as e:
            errors.append({"file": str(src), "error": str(e)})

    print(f"\nRepair complete:")
    print(f"  Files: {len(args.inputs)}")
    print(f"  Repaired cells: {sum(r['repaired'] for r in results)}")
    print(f"  Runs: {sum(r['runs'] for r in results)}")
    print(f"  Skipped runs: {sum(r['skipped'] for r in results)}")
    print(f"  Errors: {len(errors)}")

    if errors:
        print("\nErrors:")
        for err in errors[:10]:
            print(f"  {err['file']}: {err['error']}")
        if len(errors) > 10:
            print(f"  ... and {len(errors) - 10} more")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
