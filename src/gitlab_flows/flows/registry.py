"""Name-to-factory registry used to dispatch flows."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Protocol, Sequence

from ..errors import UnknownFlowError

logger = logging.getLogger(__name__)


class Flow(Protocol):
    """A runnable flow instance."""

    def run(self) -> Any:
        ...


FlowFactory = Callable[..., Flow]


class FlowRegistry:
    """Maps flow names to factories.

    Registering a name twice keeps the last factory. The composition root
    populates the registry once at start-up; afterwards it is only read.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, FlowFactory] = {}

    def register(self, name: str, factory: FlowFactory) -> None:
        self._factories[str(name)] = factory

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return str(name) in self._factories

    def resolve(self, name: str) -> FlowFactory:
        """Return the factory registered under ``name``.

        Raises:
            UnknownFlowError: If no factory is registered for ``name``.
        """
        factory = self._factories.get(str(name))
        if factory is None:
            raise UnknownFlowError(name)
        return factory

    def dispatch(self, name: str, argv: Sequence[str] = (), **options: Any) -> Any:
        """Build the flow registered under ``name`` and run it.

        ``argv`` and any keyword ``options`` are handed to the factory unchanged;
        the flow's ``run()`` result is returned as-is.
        """
        factory = self.resolve(name)
        logger.info("Dispatching flow", extra={"flow": name, "argc": len(argv)})
        flow = factory(argv=list(argv), **options)
        return flow.run()
