"""stack-provisioner: converge Ubuntu servers to a known web stack."""

__version__ = "1.0.0"
