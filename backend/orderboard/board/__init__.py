from .reconciler import OptimisticReconciler
from .kanban import KanbanBoard, OrderCard, Region, DropResult, closest_center

__all__ = [
    'OptimisticReconciler',
    'KanbanBoard', 'OrderCard', 'Region', 'DropResult', 'closest_center',
]
