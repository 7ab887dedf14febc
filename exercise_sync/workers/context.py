from dataclasses import dataclass, field

from sqlalchemy.orm import Session, sessionmaker

from exercise_sync.integrations.factory import IntegrationClients
from exercise_sync.workers.inflight import InFlightRegistry
from exercise_sync.workers.progress import StatusPublisher


@dataclass
class WorkerContext:
    """Everything a workflow needs, handed over at construction time.

    Attributes:
        session_factory: Opens one database session per job
        clients: Builds Player/Gallery/CITE clients and fetches tokens
        publisher: Sends status messages to the exercise's topic
        in_flight: Per-exercise markers released when a job ends
    """

    session_factory: sessionmaker[Session]
    clients: IntegrationClients
    publisher: StatusPublisher
    in_flight: InFlightRegistry = field(default_factory=InFlightRegistry)
