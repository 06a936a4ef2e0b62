"""
Order status catalog: the closed set of lab production statuses,
their display labels and the station each status belongs to
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Production statuses an order can hold"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    PROJETANDO = "projetando"
    PROJETADO = "projetado"
    FRESADO_PROVISORIO = "fresado-provisorio"
    FRESADO_DEFINITIVO = "fresado-definitivo"
    MAQUIAGEM = "maquiagem"
    ENTREGUE_PROVISORIO = "entregue-provisorio"
    VAZADO = "vazado"
    PURETO = "pureto"
    COMPLETED = "completed"


STATUS_LABELS = {
    OrderStatus.PENDING: "Pendente",
    OrderStatus.IN_PROGRESS: "Em Andamento",
    OrderStatus.PROJETANDO: "Projetando",
    OrderStatus.PROJETADO: "Projetado",
    OrderStatus.FRESADO_PROVISORIO: "Fresado Provisório",
    OrderStatus.FRESADO_DEFINITIVO: "Fresado Definitivo",
    OrderStatus.MAQUIAGEM: "Maquiagem",
    OrderStatus.ENTREGUE_PROVISORIO: "Entregue Provisório",
    OrderStatus.VAZADO: "Vazado",
    OrderStatus.PURETO: "Pureto",
    OrderStatus.COMPLETED: "Concluído",
}

# Statuses that mark the start of production work
ACCEPTED_STATUSES = frozenset({OrderStatus.IN_PROGRESS.value, OrderStatus.PROJETANDO.value})
COMPLETED_STATUS = OrderStatus.COMPLETED.value


class Station(str, Enum):
    """Physical stations on the lab floor"""
    ESPERA = "espera"
    PROJETO = "projeto"
    FRESADORA = "fresadora"
    MAQUIAGEM = "maquiagem"
    VAZADO = "vazado"
    PURETO = "pureto"
    SAIDA = "saida"


STATUS_STATIONS = {
    OrderStatus.PENDING: Station.ESPERA,
    OrderStatus.IN_PROGRESS: Station.PROJETO,
    OrderStatus.PROJETANDO: Station.PROJETO,
    OrderStatus.PROJETADO: Station.FRESADORA,
    OrderStatus.FRESADO_DEFINITIVO: Station.MAQUIAGEM,
    OrderStatus.MAQUIAGEM: Station.MAQUIAGEM,
    OrderStatus.FRESADO_PROVISORIO: Station.SAIDA,
    OrderStatus.VAZADO: Station.VAZADO,
    OrderStatus.PURETO: Station.PURETO,
    OrderStatus.COMPLETED: Station.SAIDA,
    OrderStatus.ENTREGUE_PROVISORIO: Station.SAIDA,
}


def parse_status(value: str) -> OrderStatus:
    """Convert a raw value to an OrderStatus, raising ValueError if unknown"""
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in OrderStatus)
        raise ValueError(f"Status must be one of: {allowed}")


def status_label(value: str) -> str:
    """Display label for a status; rows written before the enum existed fall back to the raw value"""
    try:
        return STATUS_LABELS[OrderStatus(value)]
    except ValueError:
        return value


def station_for(value: str) -> Station:
    try:
        return STATUS_STATIONS[OrderStatus(value)]
    except ValueError:
        return Station.ESPERA
