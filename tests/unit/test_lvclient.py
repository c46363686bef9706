"""
Unit tests for the logical volume client and call context.
"""

import pytest

from localvol.csi.context import CallContext
from localvol.csi.lvclient import LogicalVolumeClient, build_spec
from localvol.exceptions import (
    ConvergenceTimeout,
    DeadlineExceeded,
    LogicalVolumeFailed,
    OperationCancelled,
    ResourceNotFound,
    StatusCode,
)
from localvol.models import LogicalVolume, LogicalVolumePhase, LogicalVolumeStatus, VolumeType

GiB = 1 << 30
MiB = 1 << 20


def _set_status(store, name, actual_size, phase=LogicalVolumePhase.READY, reason=""):
    volume = store.get(LogicalVolume, name)
    volume.status = LogicalVolumeStatus(phase=phase, actual_size=actual_size, reason=reason)
    store.update(volume)


class TestBuildSpec:
    """Tests for build_spec function."""

    @pytest.mark.unit
    def test_thin_spec(self, volume_groups):
        """Test a thin spec names its pool and the volume name on the node."""
        spec = build_spec("pvc-1", volume_groups[1], VolumeType.THIN, 10 * GiB, "pool-y")

        assert spec.lvm_volume_group_name == "vg-b"
        assert spec.actual_lv_name_on_the_node == "pvc-1"
        assert spec.thin.pool_name == "pool-y"
        assert spec.size == 10 * GiB

    @pytest.mark.unit
    def test_thick_spec(self, volume_groups):
        """Test a thick spec has no thin section even if a pool is passed."""
        spec = build_spec("pvc-1", volume_groups[0], VolumeType.THICK, GiB, "pool-x")

        assert spec.thin is None
        assert spec.thick.contiguous is False

    @pytest.mark.unit
    def test_contiguous_only_for_thick(self, volume_groups):
        """Test contiguous allocation is requested for thick volumes only."""
        thick = build_spec("pvc-1", volume_groups[0], VolumeType.THICK, GiB, contiguous=True)
        thin = build_spec("pvc-1", volume_groups[0], VolumeType.THIN, GiB, "pool-x", contiguous=True)

        assert thick.thick.contiguous is True
        assert thick.to_wire()["thick"] == {"contiguous": True}
        assert thin.thick is None


class TestLogicalVolumeClient:
    """Tests for LogicalVolumeClient."""

    @pytest.fixture
    def client(self, pending_store):
        return LogicalVolumeClient(pending_store, poll_interval=0, poll_attempts=3)

    @pytest.fixture
    def volume(self, client, volume_groups):
        return client.create("pvc-1", build_spec("pvc-1", volume_groups[0], VolumeType.THICK, GiB))

    @pytest.mark.unit
    def test_create_existing_is_reused(self, client, volume, volume_groups):
        """Test creating an existing volume returns the stored one."""
        again = client.create("pvc-1", build_spec("pvc-1", volume_groups[1], VolumeType.THICK, 2 * GiB))

        assert again.metadata.uid == volume.metadata.uid
        assert again.spec.lvm_volume_group_name == "vg-a"

    @pytest.mark.unit
    def test_delete_missing_is_ok(self, client):
        """Test deleting a missing volume succeeds."""
        client.delete("pvc-missing")

    @pytest.mark.unit
    def test_expand_sets_size(self, client, volume):
        """Test expand writes the new desired size."""
        client.expand("pvc-1", 2 * GiB)

        assert client.get("pvc-1").spec.size == 2 * GiB

    @pytest.mark.unit
    def test_converged(self, client, volume, pending_store):
        """Test a Ready volume at the desired size converges on the first attempt."""
        _set_status(pending_store, "pvc-1", GiB)

        assert client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB) == 1

    @pytest.mark.unit
    def test_converged_within_delta(self, client, volume, pending_store):
        """Test an actual size just below the desired size is accepted."""
        _set_status(pending_store, "pvc-1", GiB - MiB)

        assert client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB) == 1

    @pytest.mark.unit
    def test_timeout(self, client, volume):
        """Test the attempt budget runs out without a status."""
        with pytest.raises(ConvergenceTimeout) as exc:
            client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB)

        assert exc.value.code == StatusCode.DEADLINE_EXCEEDED
        assert "after 3 attempts" in exc.value.message

    @pytest.mark.unit
    def test_size_outside_delta_times_out(self, client, volume, pending_store):
        """Test a Ready volume at the wrong size does not converge."""
        _set_status(pending_store, "pvc-1", GiB // 2)

        with pytest.raises(ConvergenceTimeout):
            client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB)

    @pytest.mark.unit
    def test_failed_phase(self, client, volume, pending_store):
        """Test a Failed phase stops polling at once."""
        _set_status(pending_store, "pvc-1", 0, LogicalVolumePhase.FAILED, "no space left")

        with pytest.raises(LogicalVolumeFailed, match="no space left"):
            client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB)

    @pytest.mark.unit
    def test_cancelled(self, client, volume):
        """Test a cancelled call stops before polling."""
        ctx = CallContext()
        ctx.cancel()

        with pytest.raises(OperationCancelled) as exc:
            client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB, ctx)

        assert exc.value.code == StatusCode.CANCELLED

    @pytest.mark.unit
    def test_deadline(self, client, volume):
        """Test an expired deadline stops polling."""
        with pytest.raises(DeadlineExceeded) as exc:
            client.wait_for_convergence("pvc-1", "", GiB, 2 * MiB, CallContext(timeout=0))

        assert exc.value.code == StatusCode.DEADLINE_EXCEEDED

    @pytest.mark.unit
    def test_volume_disappears(self, client):
        """Test a missing volume is reported as not found."""
        with pytest.raises(ResourceNotFound):
            client.wait_for_convergence("pvc-missing", "", GiB, 2 * MiB)


class TestCallContext:
    """Tests for CallContext."""

    @pytest.mark.unit
    def test_no_deadline(self):
        """Test a context without timeout never expires."""
        ctx = CallContext()

        assert ctx.remaining() is None
        assert not ctx.expired
        assert ctx.wait(0) is True
        ctx.check("noop")

    @pytest.mark.unit
    def test_cancel(self):
        """Test wait reports cancellation."""
        ctx = CallContext(timeout=60)
        ctx.cancel()

        assert ctx.cancelled
        assert ctx.wait(10) is False

    @pytest.mark.unit
    def test_wait_capped_by_deadline(self):
        """Test wait returns False once the deadline passes."""
        ctx = CallContext(timeout=0.01)

        assert ctx.wait(30) is False
        assert ctx.expired
