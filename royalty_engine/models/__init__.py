from royalty_engine.models.author import Author
from royalty_engine.models.title import Title
from royalty_engine.models.title_authorship import TitleAuthorship
from royalty_engine.models.contract import Contract, ContractStatus, TierCalculationMode
from royalty_engine.models.contract_tier import ContractTier
from royalty_engine.models.sale import Sale, SalesFormat, SalesChannel
from royalty_engine.models.sale_return import SaleReturn, ReturnStatus
from royalty_engine.models.statement import Statement, StatementStatus

__all__ = [
    # Catalog models
    "Author",
    "Title",
    "TitleAuthorship",
    # Contract models
    "Contract",
    "ContractStatus",
    "TierCalculationMode",
    "ContractTier",
    # Sales models
    "Sale",
    "SalesFormat",
    "SalesChannel",
    "SaleReturn",
    "ReturnStatus",
    # Statement models
    "Statement",
    "StatementStatus",
]
