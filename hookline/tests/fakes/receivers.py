"""Fake ReceiverPlatformPort implementation for testing."""

from dataclasses import replace

from hookline.core.errors import ApiError
from hookline.core.models import ReceiverService, ReceiverSpec
from hookline.core.ports import ReceiverPlatformPort


class FakeReceiverPlatformPort(ReceiverPlatformPort):
    """In-memory receiver platform for testing.

    Created receivers start out not ready; tests flip them with
    ``make_ready``.
    """

    def __init__(self):
        """Initialize with no receivers."""
        self.receivers: dict[str, list[ReceiverService]] = {}
        self.created_specs: list[ReceiverSpec] = []
        self.list_calls: list[str] = []
        self.create_error: ApiError | None = None
        self.list_error: ApiError | None = None

    def add_receiver(self, receiver: ReceiverService) -> None:
        self.receivers.setdefault(receiver.namespace, []).append(receiver)

    def make_ready(self, name: str, address: str | None = "http://receiver.example") -> None:
        """Mark a receiver ready and optionally addressable."""
        for receivers in self.receivers.values():
            for i, receiver in enumerate(receivers):
                if receiver.name == name:
                    receivers[i] = replace(receiver, ready=True, address=address)
                    return
        raise KeyError(name)

    async def list_receivers(self, namespace: str) -> list[ReceiverService]:
        self.list_calls.append(namespace)
        if self.list_error is not None:
            raise self.list_error
        return list(self.receivers.get(namespace, []))

    async def create_receiver(self, spec: ReceiverSpec) -> ReceiverService:
        if self.create_error is not None:
            raise self.create_error
        self.created_specs.append(spec)
        receiver = ReceiverService(
            name=f"{spec.generate_name}{len(self.created_specs):05d}",
            namespace=spec.namespace,
            owner_uids=(spec.owner.uid,),
        )
        self.add_receiver(receiver)
        return receiver
