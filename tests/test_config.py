# Author: Emrullah Erce Dutkan
import numpy as np
import pytest

from online_pca.config import (
    ALGORITHMS,
    NormalizationConfig,
    PCAConfig,
    RandomizedSVDConfig,
    get_default_config,
    validate_config,
)
from online_pca.exceptions import ConfigurationError


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_defaults_are_valid(algorithm):
    config = get_default_config(algorithm)
    assert config.algorithm == algorithm
    assert validate_config(config) is config


def test_rsvd_defaults_to_sqrt_scale():
    assert get_default_config("rsvd").normalization.scale == "sqrt"


@pytest.mark.parametrize(
    "changes, message",
    [
        ({"algorithm": "kpca"}, "Unknown algorithm"),
        ({"scheduling": "rmsprop"}, "scheduling"),
        ({"dim": 0}, "dim"),
        ({"numepoch": 0}, "numepoch"),
        ({"stepsize": -1.0}, "stepsize"),
        ({"check_frequency": 0}, "check_frequency"),
        ({"evalfreq": 0}, "evalfreq"),
        ({"lower": 2.0, "upper": 1.0}, "lower"),
        ({"perm": True}, "perm"),
        ({"normalization": NormalizationConfig(scale="sqrt")}, "sqrt"),
        ({"normalization": NormalizationConfig(mask=[0])}, "mask"),
    ],
)
def test_invalid_oja_options(changes, message):
    with pytest.raises(ConfigurationError, match=message):
        validate_config(PCAConfig(algorithm="oja", **changes))


def test_feature_table_differs_between_variants():
    rowvar = NormalizationConfig(rowvar=[1.0])
    validate_config(PCAConfig(algorithm="rsvrg", normalization=rowvar))
    with pytest.raises(ConfigurationError, match="rowvar"):
        validate_config(PCAConfig(algorithm="svrg", normalization=rowvar))

    validate_config(PCAConfig(algorithm="ccipca", normalization=NormalizationConfig(mask=[0])))
    validate_config(PCAConfig(algorithm="rsvrg", perm=True))
    validate_config(PCAConfig(algorithm="oja", lower=1e-3))


def test_rsvd_ignores_scheduling():
    validate_config(PCAConfig(algorithm="rsvd", scheduling="unused"))


def test_rsvd_options_checked():
    with pytest.raises(ConfigurationError, match="niter"):
        validate_config(PCAConfig(algorithm="rsvd", rsvd=RandomizedSVDConfig(niter=-1)))


def test_initializations_are_exclusive():
    with pytest.raises(ConfigurationError, match="mutually exclusive"):
        validate_config(PCAConfig(init_w="w.csv", init_v="v.csv"))


def test_dict_round_trip():
    config = PCAConfig(
        algorithm="rsvrg",
        dim=4,
        scheduling="nag",
        normalization=NormalizationConfig(scale="log", rowmean=np.array([1.0, 2.0])),
        rsvd=RandomizedSVDConfig(niter=5),
    )

    d = config.to_dict()
    assert d["normalization"]["rowmean"] == [1.0, 2.0]

    restored = PCAConfig.from_dict(d)
    assert restored.dim == 4
    assert restored.scheduling == "nag"
    assert restored.normalization.scale == "log"
    assert restored.normalization.rowmean == [1.0, 2.0]
    assert restored.rsvd.niter == 5


def test_ccipca_accepts_zero_amnesia():
    validate_config(PCAConfig(algorithm="ccipca", stepsize=0.0))
    with pytest.raises(ConfigurationError, match="non-negative"):
        validate_config(PCAConfig(algorithm="ccipca", stepsize=-0.5))


@pytest.mark.parametrize("algorithm", ["oja", "rsgd", "svrg", "rsvrg"])
def test_gradient_family_needs_positive_stepsize(algorithm):
    with pytest.raises(ConfigurationError, match="positive"):
        validate_config(PCAConfig(algorithm=algorithm, stepsize=0.0))


def test_rsvd_accepts_perm():
    validate_config(PCAConfig(algorithm="rsvd", perm=True))
