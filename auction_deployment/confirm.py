from collections import OrderedDict

from auction_deployment.constants import ZERO_ADDRESS
from auction_deployment.exceptions import OperatorAbort


def _ask(question: str, abort_message: str) -> None:
    answer = input(question)
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        raise OperatorAbort(abort_message)


def _continue(step: str) -> None:
    """Asks the user to continue with the next step."""
    _ask(f"Next: {step}. Continue Y/N? ", abort_message=f"Operator declined: {step}")


def _confirm_zero_address() -> None:
    _ask(
        "Zero Address detected for deployment parameter; Continue? Y/N? ",
        abort_message="Operator declined zero address parameter",
    )


def _confirm_resolution(resolved_params: OrderedDict, contract_name: str) -> None:
    """Asks the user to confirm the resolved parameters for a single deployment."""
    if len(resolved_params) == 0:
        print(f"\n(i) No constructor parameters for {contract_name}")
        _ask(f"Deploy {contract_name} Y/N? ", abort_message=f"Operator declined {contract_name}")
        return

    print(f"\nParameters for {contract_name}")
    contains_zero_address = False
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
        if not contains_zero_address:
            contains_zero_address = resolved_value == ZERO_ADDRESS
    _ask(f"Deploy {contract_name} Y/N? ", abort_message=f"Operator declined {contract_name}")
    if contains_zero_address:
        _confirm_zero_address()
