from __future__ import annotations

import random
import re

import pytest

from gwdemo.config import build_config
from gwdemo.services.naming import deployment_name, random_resource_name


def test_random_resource_name_pads_prefix_to_max_len() -> None:
    name = random_resource_name("rgNEAGS", 15, rng=random.Random(1))

    assert len(name) == 15
    assert name.startswith("rgneags")
    assert re.fullmatch(r"[0-9a-z]+", name)


def test_random_resource_name_is_deterministic_with_seeded_rng() -> None:
    first = random_resource_name("pip-", 18, rng=random.Random(42))
    second = random_resource_name("pip-", 18, rng=random.Random(42))

    assert first == second


def test_short_limit_yields_fully_random_name() -> None:
    name = random_resource_name("longprefix", 8, rng=random.Random(3))

    assert len(name) == 8
    assert not name.startswith("longpref")


def test_random_resource_name_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        random_resource_name("rg", 0)


def test_deployment_name_is_valid_and_bounded() -> None:
    name = deployment_name("a" * 80, "update", rng=random.Random(5))

    assert len(name) <= 64
    assert re.fullmatch(r"[A-Za-z0-9_.()-]+", name)


def test_build_config_seed_reproduces_names() -> None:
    first = build_config(seed=7)
    second = build_config(seed=7)

    assert first.resource_group_name == second.resource_group_name
    assert first.public_ip_name == second.public_ip_name
    assert len(first.resource_group_name) == 15
    assert first.public_ip_name.startswith("pip-")
    assert len(first.public_ip_name) == 18


def test_build_config_overrides_win_and_none_is_ignored(tmp_path) -> None:
    config = build_config(
        seed=7,
        resource_group_name="rg-explicit",
        public_ip_name=None,
        certificate_path=str(tmp_path / "cert._pfx"),
        backend_ip_addresses=["10.0.0.1"],
    )

    assert config.resource_group_name == "rg-explicit"
    assert config.public_ip_name == build_config(seed=7).public_ip_name
    assert config.certificate_path == tmp_path / "cert._pfx"
    assert config.backend_ip_addresses == ("10.0.0.1",)
    assert config.gateway_name == "myFirstAppGateway"
