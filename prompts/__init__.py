from .contract import (
    REQUIRED_FIELDS,
    UNREADABLE_SENTINEL,
    ContractError,
    MeterContract,
)

__all__ = ["MeterContract", "ContractError", "REQUIRED_FIELDS", "UNREADABLE_SENTINEL"]
