from fieldpos.schemas.customer_schemas import (
    CustomerCreate,
    CustomerOut,
    CustomerBalancesOut,
)
from fieldpos.schemas.collection_schemas import (
    CollectionCreate,
    CollectionOut,
    CollectionResult,
    VoidRequest,
    VoidResult,
    RemarksUpdate,
    ReceiptStatusUpdate,
    DailyStatsOut,
    CustomerHistoryOut,
    CollectionListOut,
    ReconciliationOut,
)
