"""Tests for the partition model (no filesystem involved)."""
import pytest

from hydra_corpus.corpus.partition import (
    PartitionGroup,
    PartitionRole,
    RegexPartitionPolicy,
    classify,
)
from hydra_corpus.errors import UnrecognizedGroup


@pytest.mark.parametrize("path,role,version", [
    ("solana_controls_v1/repo-control-f/src/lib.rs", PartitionRole.CONTROL, 1),
    ("solana_control_v3/repo/src/lib.rs", PartitionRole.CONTROL, 3),
    ("solana_seeded_v2/repo-template-c/src/lib.rs", PartitionRole.SEEDED, 2),
    ("solana_holdout_v1/repo-holdout-1/src/lib.rs", PartitionRole.HOLDOUT, 1),
    ("acme_dex_seeded_v1/repo/src/lib.rs", PartitionRole.SEEDED, 1),
    ("a_b_c_holdouts_v7/repo/src/lib.rs", PartitionRole.HOLDOUT, 7),
])
def test_classify_known_groups(path, role, version):
    group = classify(path)
    assert group.role is role
    assert group.version == version
    assert group.name == path.split("/")[0]


def test_group_name_is_verbatim_and_dataset_id():
    group = classify("solana_seeded_v12/x/src/lib.rs")
    assert group == PartitionGroup(role=PartitionRole.SEEDED, version=12, name="solana_seeded_v12")
    assert group.dataset_id == "solana-seeded-v12"
    assert not group.is_holdout
    assert classify("solana_holdout_v1/a/lib.rs").is_holdout
    assert classify("solana_controls_v1/a/lib.rs").dataset_id == "solana-control-v1"


def test_underscored_prefix_keeps_whole_prefix():
    group = classify("acme_dex_seeded_v1/repo/src/lib.rs")
    assert group.name == "acme_dex_seeded_v1"
    assert group.dataset_id == "acme-dex-seeded-v1"


def test_classify_accepts_windows_separators():
    assert classify("solana_holdout_v1\\repo-holdout-2\\src\\lib.rs").role is PartitionRole.HOLDOUT


@pytest.mark.parametrize("path", [
    "repo-template-a/src/lib.rs",
    "solana_templates_v1/repo/src/lib.rs",
    "solana_seeded/repo/src/lib.rs",
    "solana_seeded_vx/repo/src/lib.rs",
    "",
])
def test_unrecognized_group_is_an_error(path):
    with pytest.raises(UnrecognizedGroup):
        classify(path)


def test_custom_policy_is_injectable():
    policy = RegexPartitionPolicy(
        r"^(?P<role>calib|blind)-(?P<version>\d+)$",
        {"calib": PartitionRole.SEEDED, "blind": PartitionRole.HOLDOUT},
    )
    assert policy("blind-4/repo/lib.rs").role is PartitionRole.HOLDOUT
    assert policy("calib-1/repo/lib.rs").version == 1
    with pytest.raises(UnrecognizedGroup):
        policy("solana_seeded_v1/repo/lib.rs")


def test_policy_pattern_needs_role_and_version():
    with pytest.raises(ValueError):
        RegexPartitionPolicy(r"^(?P<role>\w+)$")
