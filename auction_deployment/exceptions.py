"""Exceptions raised while deploying and upgrading the auction contracts."""


class DeploymentError(Exception):
    """Base exception for deployment and upgrade errors."""


class DeploymentConfigError(DeploymentError, ValueError):
    """Raised when the deployment params file is malformed."""


class LedgerNotFound(DeploymentError, FileNotFoundError):
    """Raised when there is no ledger for the network yet."""


class CorruptLedger(DeploymentError, ValueError):
    """Raised when the ledger file exists but cannot be parsed."""


class StaleLedger(DeploymentError):
    """Raised when addresses recorded in the ledger have no code on the network."""

    def __init__(self, dead):
        self.dead = list(dead)
        labels = ", ".join(f"{p.label}={p.address}" for p in self.dead)
        super().__init__(
            f"Ledger is stale, no contract code at: {labels}. "
            "The network was probably reset; remove the ledger before deploying again."
        )


class PostUpgradeVerificationFailed(DeploymentError):
    """Raised when the on-chain implementation does not match the one just produced."""

    def __init__(self, source: str, expected: str, actual: str):
        self.source = source
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{source} reports implementation {actual}, expected {expected}. "
            "Ledger was not updated."
        )


class VerificationFailed(DeploymentError):
    """Raised when the verification pass finds discrepancies."""

    def __init__(self, discrepancies):
        self.discrepancies = list(discrepancies)
        details = "\n\t".join(str(d) for d in self.discrepancies)
        super().__init__(f"{len(self.discrepancies)} discrepancies found:\n\t{details}")


class OperatorAbort(DeploymentError):
    """Raised when the operator declines to continue with the next step."""
