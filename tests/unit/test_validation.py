"""
Unit tests for LocalStorageClass validation and the binding diff.
"""

import pytest

from localvol.controller.diff import has_binding_diff
from localvol.controller.storage_class import build_storage_class
from localvol.controller.validation import validate
from localvol.exceptions import ParametersDecodeError
from localvol.models import LocalStorageClass, LocalStorageClassSpec, ObjectMeta, StorageClass, VolumeType

PROVISIONER = "local.csi.localvol.io"
GiB = 1 << 30


class TestValidate:
    """Tests for validate function."""

    @pytest.mark.unit
    def test_valid_thin(self, make_lsc, volume_groups):
        """Test existing groups on distinct nodes with existing pools pass."""
        lsc = make_lsc(bindings=[("vg-a", "pool-x"), ("vg-b", "pool-y")])

        assert validate(lsc, [], volume_groups, PROVISIONER) == (True, "")

    @pytest.mark.unit
    def test_reports_every_failure(self, make_lsc, make_vg, volume_groups):
        """Test same-node groups and a missing pool appear in one message."""
        groups = volume_groups + [make_vg("vg-a2", "node-a", free=GiB, pools=[("pool-x2", GiB)])]
        lsc = make_lsc(bindings=[("vg-a", "pool-x"), ("vg-a2", "pool-x2"), ("vg-b", "pool-missing")])

        valid, message = validate(lsc, [], groups, PROVISIONER)

        assert valid is False
        lines = message.split("\n")
        assert len(lines) == 2
        assert lines[0] == "Some LVMVolumeGroups use the same node (|node: LVG names): |node-a: vg-a,vg-a2,"
        assert lines[1] == "Some LVMVolumeGroups use nonexistent thin pools, LVG names: vg-b"

    @pytest.mark.unit
    def test_nonexistent_groups(self, make_lsc, volume_groups):
        """Test unknown groups are listed."""
        lsc = make_lsc(volume_type=VolumeType.THICK, bindings=[("vg-a", None), ("vg-q", None), ("vg-r", None)])

        valid, message = validate(lsc, [], volume_groups, PROVISIONER)

        assert valid is False
        assert message == "Some of selected LVMVolumeGroups are nonexistent, LVG names: vg-q,vg-r"

    @pytest.mark.unit
    def test_thick_with_pools(self, make_lsc, volume_groups):
        """Test thick storage classes must not name thin pools."""
        lsc = make_lsc(volume_type=VolumeType.THICK, bindings=[("vg-a", "pool-x"), ("vg-b", None)])

        valid, message = validate(lsc, [], volume_groups, PROVISIONER)

        assert valid is False
        assert message == "Some LVMVolumeGroups use thin pools though device type is Thick, LVG names: vg-a"

    @pytest.mark.unit
    def test_unmanaged_duplicate(self, make_lsc, volume_groups):
        """Test a same-named StorageClass of another provisioner is reported."""
        lsc = make_lsc(bindings=[("vg-a", "pool-x")])
        foreign = StorageClass(metadata=ObjectMeta(name="local-thin"), provisioner="other.example.io")

        valid, message = validate(lsc, [foreign], volume_groups, PROVISIONER)

        assert valid is False
        assert message.startswith("There already is a storage class with the same name: local-thin")

    @pytest.mark.unit
    def test_missing_lvm_section(self, volume_groups):
        """Test a LocalStorageClass without lvm cannot be typed."""
        lsc = LocalStorageClass(metadata=ObjectMeta(name="untyped"), spec=LocalStorageClassSpec())

        valid, message = validate(lsc, [], volume_groups, PROVISIONER)

        assert valid is False
        assert message == "Unable to identify a type of LocalStorageClass untyped"


class TestHasBindingDiff:
    """Tests for has_binding_diff function."""

    @pytest.mark.unit
    def test_up_to_date(self, make_lsc):
        """Test a freshly built StorageClass has no diff."""
        lsc = make_lsc(bindings=[("vg-a", "pool-x"), ("vg-b", "pool-y")])

        assert has_binding_diff(build_storage_class(lsc, PROVISIONER), lsc) is False

    @pytest.mark.unit
    def test_added_group(self, make_lsc):
        """Test a different number of groups is a diff."""
        sc = build_storage_class(make_lsc(bindings=[("vg-a", "pool-x")]), PROVISIONER)
        lsc = make_lsc(bindings=[("vg-a", "pool-x"), ("vg-b", "pool-y")])

        assert has_binding_diff(sc, lsc) is True

    @pytest.mark.unit
    def test_changed_pool(self, make_lsc):
        """Test a different pool for the same group is a diff."""
        sc = build_storage_class(make_lsc(bindings=[("vg-a", "pool-x")]), PROVISIONER)

        assert has_binding_diff(sc, make_lsc(bindings=[("vg-a", "pool-other")])) is True

    @pytest.mark.unit
    def test_order_matters(self, make_lsc):
        """Test comparison is positional."""
        sc = build_storage_class(make_lsc(bindings=[("vg-a", "pool-x"), ("vg-b", "pool-y")]), PROVISIONER)

        assert has_binding_diff(sc, make_lsc(bindings=[("vg-b", "pool-y"), ("vg-a", "pool-x")])) is True

    @pytest.mark.unit
    def test_thick_ignores_pools(self, make_lsc):
        """Test thick classes compare names only."""
        lsc = make_lsc(volume_type=VolumeType.THICK, bindings=[("vg-a", None)])

        assert has_binding_diff(build_storage_class(lsc, PROVISIONER), lsc) is False

    @pytest.mark.unit
    def test_pool_added_to_thin(self, make_lsc):
        """Test a pool appearing on the LocalStorageClass side is a diff."""
        sc = build_storage_class(make_lsc(volume_type=VolumeType.THICK, bindings=[("vg-a", None)]), PROVISIONER)

        assert has_binding_diff(sc, make_lsc(bindings=[("vg-a", "pool-x")])) is True

    @pytest.mark.unit
    def test_thin_without_any_pool(self, make_lsc):
        """Test a thin binding with a pool on neither side cannot be compared."""
        sc = build_storage_class(make_lsc(volume_type=VolumeType.THICK, bindings=[("vg-a", None)]), PROVISIONER)

        with pytest.raises(ParametersDecodeError, match="has no thin pool configured"):
            has_binding_diff(sc, make_lsc(bindings=[("vg-a", None)]))

    @pytest.mark.unit
    def test_undecodable_parameters(self, make_lsc):
        """Test malformed StorageClass bindings raise ParametersDecodeError."""
        lsc = make_lsc(bindings=[("vg-a", "pool-x")])
        sc = build_storage_class(lsc, PROVISIONER)
        sc.parameters[f"{PROVISIONER}/lvm-volume-groups"] = "{broken"

        with pytest.raises(ParametersDecodeError):
            has_binding_diff(sc, lsc)
