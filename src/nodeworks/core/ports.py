"""Typed connection endpoints exposed by nodes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DataType(str, Enum):
    """Type tag controlling which ports may connect.

    ``ANY`` matches every other data type.
    """

    IMAGE = "image"
    TEXT = "text"
    ANY = "any"


class PortDirection(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


@dataclass(frozen=True)
class Port:
    """A single input or output port on a node.

    Ports are identified by ``(node_id, port.id)``; ``id`` is unique within
    its node.
    """

    id: str
    direction: PortDirection
    data_type: DataType = DataType.ANY
    label: str | None = None

    @classmethod
    def input(cls, port_id: str, data_type: DataType, label: str | None = None) -> Port:
        return cls(port_id, PortDirection.INPUT, DataType(data_type), label)

    @classmethod
    def output(cls, port_id: str, data_type: DataType, label: str | None = None) -> Port:
        return cls(port_id, PortDirection.OUTPUT, DataType(data_type), label)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "direction": self.direction.value,
            "data_type": self.data_type.value,
        }
        if self.label is not None:
            data["label"] = self.label
        return data


def compatible(a: DataType, b: DataType) -> bool:
    """Return True if a port of type ``a`` may connect to a port of type ``b``.

    Pure and total: equal types match, and ``any`` matches everything.
    """
    a = DataType(a)
    b = DataType(b)
    return a == b or a is DataType.ANY or b is DataType.ANY
