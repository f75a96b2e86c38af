"""Tests for LutRepairEngine."""

import pytest
import numpy as np

from lenslut.core import (
    LutBuffer,
    CellStatus,
    RepairConfig,
    ScanPass,
    LutRepairEngine,
    EdgeRunError,
    repair_buffer,
)


def _row_config(policy="linear", edge_policy="raise", failure="any"):
    return RepairConfig(
        policy=policy,
        failure=failure,
        edge_policy=edge_policy,
        passes=[ScanPass(axis="row", shadow_width=0, seek_width=None)],
    )


def _row_buffer(u, failed, status=CellStatus.SOFT, v=0.10):
    u = np.asarray(u, dtype=np.float32)
    coords = np.stack([u, np.full_like(u, v)], axis=-1)[None]  # [1, W, 2]
    buf = LutBuffer(coords)
    for i in failed:
        buf.status[0, i] = status
        buf.coords[0, i] = (-1.0, -1.0)  # placeholder emitted by the kernel
    return buf


class TestLinearPolicy:
    @pytest.fixture
    def buffer(self):
        u = np.arange(10) / 10.0
        return _row_buffer(u, failed=[4, 5, 6])

    def test_midpoint(self, buffer):
        assert buffer.coords[0, 3, 0] == pytest.approx(0.30)
        assert buffer.coords[0, 7, 0] == pytest.approx(0.70)

        report = LutRepairEngine(_row_config()).repair(buffer)

        assert buffer.coords[0, 5, 0] == pytest.approx(0.50, abs=1e-6)
        assert buffer.coords[0, 5, 1] == pytest.approx(0.10, abs=1e-6)
        assert buffer.status[0, 5] == CellStatus.VALID
        assert report.num_runs == 1
        assert report.repaired_cells == 3
        assert report.runs[0].action == "linear"

    def test_blend_factors(self, buffer):
        LutRepairEngine(_row_config()).repair(buffer)
        assert buffer.coords[0, 4:7, 0].tolist() == pytest.approx([0.4, 0.5, 0.6], abs=1e-6)
        assert (buffer.status == CellStatus.VALID).all()

    def test_valid_cells_untouched(self, buffer):
        before = buffer.copy()
        LutRepairEngine(_row_config()).repair(buffer)
        keep = [0, 1, 2, 3, 7, 8, 9]
        assert np.array_equal(buffer.coords[0, keep], before.coords[0, keep])

    def test_idempotent(self, buffer):
        engine = LutRepairEngine(_row_config())
        engine.repair(buffer)
        once = buffer.copy()

        report = engine.repair(buffer)

        assert report.num_runs == 0
        assert buffer == once

    def test_functional_repair(self, buffer):
        report = repair_buffer(buffer, cfg=_row_config(policy="spline"), policy="linear")
        assert report.runs[0].action == "linear"
        assert buffer.coords[0, 5, 0] == pytest.approx(0.5, abs=1e-6)


class TestSplinePolicy:
    @pytest.fixture
    def buffer(self):
        x = np.arange(10, dtype=np.float64)
        return _row_buffer(0.01 * x ** 2, failed=[4, 5, 6])

    def test_follows_curvature(self, buffer):
        report = LutRepairEngine(_row_config(policy="spline")).repair(buffer)

        assert report.runs[0].action == "spline"
        u5 = buffer.coords[0, 5, 0]
        linear_u5 = 0.29
        assert abs(u5 - 0.25) < abs(linear_u5 - 0.25)
        assert u5 == pytest.approx(0.247143, abs=1e-5)
        assert buffer.coords[0, 5, 1] == pytest.approx(0.10, abs=1e-6)
        assert (buffer.status == CellStatus.VALID).all()

    def test_monotone_between_anchors(self, buffer):
        LutRepairEngine(_row_config(policy="spline")).repair(buffer)
        u = buffer.coords[0, 3:8, 0]
        assert np.all(np.diff(u) > 0)

    def test_collinear_matches_linear(self):
        u = np.linspace(0.1, 0.9, 10)
        a = _row_buffer(u, failed=[4, 5, 6])
        b = a.copy()

        LutRepairEngine(_row_config(policy="linear")).repair(a)
        LutRepairEngine(_row_config(policy="spline")).repair(b)

        assert np.allclose(a.coords, b.coords, atol=1e-6)
        assert np.allclose(a.coords[0, :, 0], u, atol=1e-6)

    def test_idempotent(self, buffer):
        engine = LutRepairEngine(_row_config(policy="spline"))
        engine.repair(buffer)
        once = buffer.copy()
        assert engine.repair(buffer).num_runs == 0
        assert buffer == once

    def test_missing_guard_raises(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[1, 2])
        with pytest.raises(EdgeRunError):
            LutRepairEngine(_row_config(policy="spline")).repair(buf)

    def test_missing_guard_clamp_falls_back_to_linear(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[1, 2])
        report = LutRepairEngine(_row_config(policy="spline", edge_policy="clamp")).repair(buf)

        assert report.runs[0].action == "linear"
        assert buf.coords[0, 1:3, 0].tolist() == pytest.approx([0.1, 0.2], abs=1e-6)


class TestEdgeRuns:
    def test_run_at_start_raises(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[0, 1])
        with pytest.raises(EdgeRunError) as exc:
            LutRepairEngine(_row_config()).repair(buf)
        assert exc.value.start == 0 and exc.value.end == 1

    def test_run_at_end_skip(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[8, 9])
        report = LutRepairEngine(_row_config(edge_policy="skip")).repair(buf)

        assert len(report.skipped_runs) == 1
        assert report.repaired_cells == 0
        assert buf.status[0, 8] == CellStatus.SOFT
        assert buf.status[0, 9] == CellStatus.SOFT

    def test_run_at_end_clamp(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[8, 9])
        report = LutRepairEngine(_row_config(edge_policy="clamp")).repair(buf)

        assert report.runs[0].action == "clamped"
        assert buf.coords[0, 8:10, 0].tolist() == pytest.approx([0.7, 0.7], abs=1e-6)
        assert (buf.status == CellStatus.VALID).all()

    def test_whole_line_failed_clamp_raises(self):
        buf = _row_buffer(np.arange(4) / 4.0, failed=[0, 1, 2, 3])
        with pytest.raises(EdgeRunError):
            LutRepairEngine(_row_config(edge_policy="clamp")).repair(buf)

    def test_failed_anchor_outside_window(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[2, 3, 4, 5])
        cfg = RepairConfig(passes=[ScanPass(axis="row", shadow_width=0, seek_width=4)])  # cols 3..6
        with pytest.raises(EdgeRunError):
            LutRepairEngine(cfg).repair(buf)


class TestScanWindows:
    def test_failure_signature_filters(self):
        buf = _row_buffer(np.arange(10) / 10.0, failed=[2])
        buf.status[0, 6] = CellStatus.HARD
        buf.coords[0, 6] = (-1.0, -1.0)

        report = LutRepairEngine(_row_config(failure="hard")).repair(buf)

        assert report.num_runs == 1
        assert buf.status[0, 2] == CellStatus.SOFT
        assert buf.status[0, 6] == CellStatus.VALID
        assert buf.coords[0, 6, 0] == pytest.approx(0.6, abs=1e-6)

    def test_cells_outside_window_untouched(self):
        H, W = 8, 12
        buf = LutBuffer.identity(W, H)
        buf.status[3:5, 1] = CellStatus.SOFT   # inside the seek band
        buf.status[0, 2] = CellStatus.SOFT     # outside the seek band
        buf.status[3:5, 6] = CellStatus.SOFT   # inside the shadow band

        cfg = RepairConfig(passes=[ScanPass(axis="column", shadow_width=4, seek_width=4)])
        report = LutRepairEngine(cfg).repair(buf)

        assert report.num_runs == 1
        assert (buf.status[3:5, 1] == CellStatus.VALID).all()
        assert buf.status[0, 2] == CellStatus.SOFT
        assert (buf.status[3:5, 6] == CellStatus.SOFT).all()

    def test_columns_match_transposed_rows(self):
        rng = np.random.default_rng(7)
        H, W = 9, 6
        coords = rng.uniform(0, 1, size=(H, W, 2)).astype(np.float32)
        status = np.zeros((H, W), dtype=np.uint8)
        status[3:5, 0] = CellStatus.SOFT
        status[2:7, 4] = CellStatus.HARD
        status[5, 2] = CellStatus.SOFT

        for policy in ("linear", "spline"):
            by_col = LutBuffer(coords.copy(), status.copy())
            by_row = LutBuffer(coords.transpose(1, 0, 2).copy(), status.T.copy())

            LutRepairEngine(RepairConfig(
                policy=policy, passes=[ScanPass(axis="column", shadow_width=0, seek_width=None)]
            )).repair(by_col)
            LutRepairEngine(RepairConfig(
                policy=policy, passes=[ScanPass(axis="row", shadow_width=0, seek_width=None)]
            )).repair(by_row)

            assert np.allclose(by_col.coords, by_row.coords.transpose(1, 0, 2))
            assert np.array_equal(by_col.status, by_row.status.T)

    def test_anchors_come_from_original_cells(self):
        # Both passes cover cell (2, 2); the row pass must not see the column pass output
        buf = LutBuffer.identity(5, 5)
        buf.status[2, 2] = CellStatus.SOFT
        buf.coords[2, 2] = (9.0, 9.0)
        buf.status[2, 3] = CellStatus.SOFT
        buf.coords[2, 3] = (9.0, 9.0)

        cfg = RepairConfig(passes=[
            ScanPass(axis="column", shadow_width=0, seek_width=None),
            ScanPass(axis="row", shadow_width=0, seek_width=None),
        ])
        report = LutRepairEngine(cfg).repair(buf)

        # column pass: two single-cell runs; the row run covers only claimed cells
        assert report.num_runs == 2
        assert report.repaired_cells == 2
        expected = LutBuffer.identity(5, 5)
        assert np.allclose(buf.coords, expected.coords, atol=1e-6)


def _both_passes(order, edge_policy="raise"):
    passes = {
        "column": ScanPass(axis="column", shadow_width=0, seek_width=None),
        "row": ScanPass(axis="row", shadow_width=0, seek_width=None),
    }
    return RepairConfig(edge_policy=edge_policy, passes=[passes[a] for a in order])


class TestOverlappingPasses:
    @pytest.fixture
    def buffer(self):
        rng = np.random.default_rng(3)
        buf = LutBuffer(rng.uniform(0, 1, size=(5, 5, 2)).astype(np.float32))
        buf.status[2, 2] = CellStatus.SOFT
        return buf

    def test_pass_order_irrelevant(self, buffer):
        a, b = buffer.copy(), buffer.copy()

        report_a = LutRepairEngine(_both_passes(["column", "row"])).repair(a)
        report_b = LutRepairEngine(_both_passes(["row", "column"])).repair(b)

        assert a == b
        assert report_a.repaired_cells == report_b.repaired_cells == 1

    def test_cell_counted_once(self, buffer):
        original = buffer.copy()
        report = LutRepairEngine(_both_passes(["row", "column"])).repair(buffer)

        assert report.num_runs == 1
        assert report.repaired_cells == 1
        assert report.runs[0].axis == "column"
        expected = 0.5 * (original.coords[1, 2].astype(np.float64) + original.coords[3, 2])
        assert np.allclose(buffer.coords[2, 2], expected, atol=1e-6)

    def test_skipped_run_left_for_later_pass(self):
        buf = LutBuffer.identity(5, 5)
        buf.status[0, 2] = CellStatus.SOFT  # column run touches the top edge
        buf.coords[0, 2] = (9.0, 9.0)

        report = LutRepairEngine(_both_passes(["row", "column"], edge_policy="skip")).repair(buf)

        assert [r.action for r in report.runs] == ["skipped", "linear"]
        assert report.repaired_cells == 1
        assert np.allclose(buf.coords, LutBuffer.identity(5, 5).coords, atol=1e-6)


class TestAtomicCommit:
    def test_buffer_unchanged_on_edge_error(self):
        buf = LutBuffer.identity(10, 2)
        buf.status[0, 4] = CellStatus.SOFT   # repairable
        buf.coords[0, 4] = (-1.0, -1.0)
        buf.status[1, 0] = CellStatus.SOFT   # edge run on the next line
        buf.coords[1, 0] = (-1.0, -1.0)
        before = buf.copy()

        with pytest.raises(EdgeRunError):
            LutRepairEngine(_row_config()).repair(buf)

        assert buf == before
        assert buf.status[0, 4] == CellStatus.SOFT

    def test_buffer_unchanged_on_spline_guard_error(self):
        buf = _row_buffer(np.arange(12) / 12.0, failed=[5, 6, 10])
        before = buf.copy()

        with pytest.raises(EdgeRunError):
            LutRepairEngine(_row_config(policy="spline")).repair(buf)

        assert buf == before
