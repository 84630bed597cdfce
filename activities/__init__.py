"""Activity definitions module."""

from activities.runtime import (
    HandlerResult,
    InboundMessage,
    IntegrationRuntime,
    build_runtime,
    configure_runtime,
    get_runtime,
)
from activities.mes_to_erp import (
    route_mes_output,
    components_goods_issues_to_erp,
    goods_receipt_to_erp,
    production_order_confirmation_to_erp,
)
from activities.erp_to_mes import (
    production_order_to_mes,
    inventory_location_move_to_mes,
    inspection_lot_to_mes,
    material_master_to_mes,
)

ALL_ACTIVITIES = [
    route_mes_output,
    components_goods_issues_to_erp,
    goods_receipt_to_erp,
    production_order_confirmation_to_erp,
    production_order_to_mes,
    inventory_location_move_to_mes,
    inspection_lot_to_mes,
    material_master_to_mes,
]

__all__ = [
    # Runtime
    "HandlerResult",
    "InboundMessage",
    "IntegrationRuntime",
    "build_runtime",
    "configure_runtime",
    "get_runtime",
    # MES -> ERP
    "route_mes_output",
    "components_goods_issues_to_erp",
    "goods_receipt_to_erp",
    "production_order_confirmation_to_erp",
    # ERP -> MES
    "production_order_to_mes",
    "inventory_location_move_to_mes",
    "inspection_lot_to_mes",
    "material_master_to_mes",
    "ALL_ACTIVITIES",
]
