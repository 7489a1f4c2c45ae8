"""
MongoDB connection and storage for RatePool.

Provides connectivity, index management and the MongoDB implementation
of the scheduler store.

Document layout:
    campaigns        {_id: campaign_id, plan: {buckets, stats}, claim_counter, ...}
    participants     {_id: participant_id, campaign_id, identity, bucket_index,
                      assignments: [{item_id, sequence, status, ..., judgement}]}
    withdrawn_items  {_id: item_id, withdrawn_at}

Assignments and their judgements are embedded in the participant
document, so completing an assignment and storing its judgement is one
conditional single-document update. Claims run in a multi-document
transaction (requires a replica set, as on MongoDB Atlas).
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, TypeVar

import certifi
import pymongo
from pymongo import MongoClient, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from ratepool.config.settings import Settings, get_settings
from ratepool.core.errors import CampaignNotFound, IdentityConflict, StorageUnavailable
from ratepool.core.models import (
    Assignment,
    AssignmentStatus,
    Campaign,
    ItemId,
    Judgement,
    Participant,
)
from ratepool.storage.base import ClaimTransaction, SchedulerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARTICIPANT_FIELDS = {"assignments": 0}


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StorageUnavailable."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"MongoDB error during {operation}: {e}")
        raise StorageUnavailable(f"Storage failure during {operation}") from e


# =============================================================================
# Document mapping
# =============================================================================

def campaign_to_doc(campaign: Campaign) -> Dict[str, Any]:
    doc = campaign.to_dict()
    doc["_id"] = doc.pop("campaign_id")
    return doc


def campaign_from_doc(doc: Dict[str, Any]) -> Campaign:
    data = dict(doc)
    data["campaign_id"] = data.pop("_id")
    return Campaign.from_dict(data)


def participant_from_doc(doc: Dict[str, Any]) -> Participant:
    data = dict(doc)
    data["participant_id"] = data.pop("_id")
    return Participant.from_dict(data)


def assignment_to_subdoc(assignment: Assignment) -> Dict[str, Any]:
    subdoc = assignment.to_dict()
    del subdoc["participant_id"]
    del subdoc["campaign_id"]
    subdoc["judgement"] = None
    return subdoc


def assignment_from_subdoc(doc: Dict[str, Any], subdoc: Dict[str, Any]) -> Assignment:
    return Assignment.from_dict({
        **subdoc,
        "participant_id": doc["_id"],
        "campaign_id": doc["campaign_id"],
    })


# =============================================================================
# Claim transaction
# =============================================================================

class MongoClaimTransaction(ClaimTransaction):
    """Claim unit bound to one MongoDB client session."""

    def __init__(self, store: 'MongoStore', campaign_id: str, session: ClientSession):
        self.store = store
        self.session = session
        doc = store.campaigns.find_one({"_id": campaign_id}, session=session)
        if doc is None:
            raise CampaignNotFound(campaign_id)
        self._campaign = campaign_from_doc(doc)

    @property
    def campaign(self) -> Campaign:
        return self._campaign

    def find_participant(self, identity: str) -> Optional[Participant]:
        doc = self.store.participants.find_one(
            {"campaign_id": self._campaign.campaign_id, "identity": identity},
            PARTICIPANT_FIELDS,
            session=self.session,
        )
        return participant_from_doc(doc) if doc else None

    def withdrawn(self, item_ids: Iterable[ItemId]) -> Set[ItemId]:
        cursor = self.store.withdrawals.find(
            {"_id": {"$in": list(item_ids)}}, {"_id": 1}, session=self.session
        )
        return {doc["_id"] for doc in cursor}

    def reserve_slot(self) -> int:
        before = self.store.campaigns.find_one_and_update(
            {"_id": self._campaign.campaign_id},
            {"$inc": {"claim_counter": 1}},
            return_document=ReturnDocument.BEFORE,
            session=self.session,
        )
        return int(before["claim_counter"])

    def insert_participant(
        self,
        participant: Participant,
        assignments: List[Assignment]
    ) -> None:
        doc = participant.to_dict()
        doc["_id"] = doc.pop("participant_id")
        doc["assignments"] = [assignment_to_subdoc(a) for a in assignments]
        try:
            self.store.participants.insert_one(doc, session=self.session)
        except DuplicateKeyError as e:
            raise IdentityConflict(participant.campaign_id, participant.identity) from e


# =============================================================================
# Store
# =============================================================================

class MongoStore(SchedulerStore):
    """
    MongoDB connection and scheduler storage.

    Handles connection pooling, index creation and all scheduler reads
    and writes. Driver errors surface as StorageUnavailable.
    """

    name = "mongodb"

    def __init__(
        self,
        connection_string: str,
        db_name: str = "ratepool",
        auto_connect: bool = True,
        settings: Optional[Settings] = None
    ):
        """
        Initialize MongoDB connection.

        Args:
            connection_string: MongoDB connection URI
            db_name: Database name
            auto_connect: Whether to connect immediately
            settings: Collection names (defaults to global settings)
        """
        self.connection_string = connection_string
        self.db_name = db_name
        self.settings = settings or get_settings()
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None
        self.connected = False

        if auto_connect:
            self.connect()

    def connect(self) -> bool:
        """
        Establish connection to MongoDB.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            connect_kwargs = {
                "serverSelectionTimeoutMS": 5000,
                "maxPoolSize": 10,
                "tz_aware": True,
            }

            # Only use TLS for non-local connections (e.g., MongoDB Atlas)
            is_local = any(host in self.connection_string for host in
                          ['localhost', '127.0.0.1', '0.0.0.0'])
            if not is_local:
                connect_kwargs["tlsCAFile"] = certifi.where()

            self.client = MongoClient(self.connection_string, **connect_kwargs)

            # Test connection
            self.client.admin.command('ping')
            self.db = self.client[self.db_name]

            self._create_indexes()

            self.connected = True
            logger.info(f"Connected to MongoDB: {self.db_name}")
            return True

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"MongoDB connection failed: {e}")
            self.connected = False
            return False
        except PyMongoError as e:
            logger.error(f"Unexpected error connecting to MongoDB: {e}")
            self.connected = False
            return False

    def disconnect(self):
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            self.connected = False
            logger.info("Disconnected from MongoDB")

    def _create_indexes(self):
        """Create the indexes the scheduler's invariants rely on."""
        if self.db is None:
            return

        participants = self.db[self.settings.participants_collection]
        campaigns = self.db[self.settings.campaigns_collection]

        # One participant per (campaign, identity)
        participants.create_index(
            [("campaign_id", pymongo.ASCENDING), ("identity", pymongo.ASCENDING)],
            unique=True
        )
        # Withdrawal scans pending assignments by item
        participants.create_index(
            [("assignments.item_id", pymongo.ASCENDING), ("assignments.status", pymongo.ASCENDING)]
        )
        campaigns.create_index(
            [("is_active", pymongo.ASCENDING), ("expires_at", pymongo.ASCENDING)]
        )

    def _require_connection(self) -> Database:
        if not self.connected or self.db is None:
            logger.error("Not connected to database")
            raise StorageUnavailable("Not connected to database")
        return self.db

    @property
    def campaigns(self):
        return self._require_connection()[self.settings.campaigns_collection]

    @property
    def participants(self):
        return self._require_connection()[self.settings.participants_collection]

    @property
    def withdrawals(self):
        return self._require_connection()[self.settings.withdrawn_items_collection]

    # =========================================================================
    # Campaign Operations
    # =========================================================================

    def save_campaign(self, campaign: Campaign) -> None:
        with storage_errors("save_campaign"):
            self.campaigns.insert_one(campaign_to_doc(campaign))

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        with storage_errors("get_campaign"):
            doc = self.campaigns.find_one({"_id": campaign_id})
        return campaign_from_doc(doc) if doc else None

    def set_campaign_active(self, campaign_id: str, is_active: bool) -> Optional[Campaign]:
        with storage_errors("set_campaign_active"):
            doc = self.campaigns.find_one_and_update(
                {"_id": campaign_id},
                {"$set": {"is_active": is_active}},
                return_document=ReturnDocument.AFTER,
            )
        return campaign_from_doc(doc) if doc else None

    # =========================================================================
    # Participant & Claim Operations
    # =========================================================================

    def find_participant(self, campaign_id: str, identity: str) -> Optional[Participant]:
        with storage_errors("find_participant"):
            doc = self.participants.find_one(
                {"campaign_id": campaign_id, "identity": identity}, PARTICIPANT_FIELDS
            )
        return participant_from_doc(doc) if doc else None

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        with storage_errors("get_participant"):
            doc = self.participants.find_one({"_id": participant_id}, PARTICIPANT_FIELDS)
        return participant_from_doc(doc) if doc else None

    def run_claim(self, campaign_id: str, body: Callable[[ClaimTransaction], T]) -> T:
        """
        Run a claim body inside a transaction.

        ``with_transaction`` retries the body when concurrent claims
        conflict on the campaign's counter, so two registrants never
        commit the same bucket index.
        """
        self._require_connection()
        with storage_errors("run_claim"):
            with self.client.start_session() as session:
                return session.with_transaction(
                    lambda s: body(MongoClaimTransaction(self, campaign_id, s))
                )

    # =========================================================================
    # Assignment & Judgement Operations
    # =========================================================================

    def get_assignments(self, participant_id: str) -> List[Assignment]:
        with storage_errors("get_assignments"):
            doc = self.participants.find_one(
                {"_id": participant_id}, {"campaign_id": 1, "assignments": 1}
            )
        if not doc:
            return []
        subdocs = sorted(doc.get("assignments", []), key=lambda a: a["sequence"])
        return [assignment_from_subdoc(doc, subdoc) for subdoc in subdocs]

    def _assignment_subdoc(self, participant_id: str, item_id: ItemId):
        with storage_errors("get_assignment"):
            doc = self.participants.find_one(
                {"_id": participant_id},
                {"campaign_id": 1, "assignments": {"$elemMatch": {"item_id": item_id}}},
            )
        if not doc or not doc.get("assignments"):
            return None, None
        return doc, doc["assignments"][0]

    def get_assignment(self, participant_id: str, item_id: ItemId) -> Optional[Assignment]:
        doc, subdoc = self._assignment_subdoc(participant_id, item_id)
        return assignment_from_subdoc(doc, subdoc) if subdoc else None

    def complete_assignment(self, judgement: Judgement) -> Optional[Assignment]:
        with storage_errors("complete_assignment"):
            result = self.participants.update_one(
                {
                    "_id": judgement.participant_id,
                    "assignments": {"$elemMatch": {
                        "item_id": judgement.item_id,
                        "status": AssignmentStatus.PENDING.value,
                    }},
                },
                {"$set": {
                    "assignments.$.status": AssignmentStatus.COMPLETED.value,
                    "assignments.$.completed_at": judgement.recorded_at,
                    "assignments.$.judgement": judgement.to_dict(),
                }},
            )
        if result.matched_count == 0:
            return None
        return self.get_assignment(judgement.participant_id, judgement.item_id)

    def get_judgement(self, participant_id: str, item_id: ItemId) -> Optional[Judgement]:
        _, subdoc = self._assignment_subdoc(participant_id, item_id)
        if not subdoc or not subdoc.get("judgement"):
            return None
        return Judgement.from_dict(subdoc["judgement"])

    def list_judgements(self, campaign_id: str) -> List[Judgement]:
        with storage_errors("list_judgements"):
            docs = list(self.participants.find(
                {"campaign_id": campaign_id, "assignments.status": AssignmentStatus.COMPLETED.value},
                {"assignments": 1},
            ))
        return [
            Judgement.from_dict(subdoc["judgement"])
            for doc in docs
            for subdoc in doc.get("assignments", [])
            if subdoc.get("judgement")
        ]

    def list_participant_judgements(self, participant_id: str) -> List[Judgement]:
        with storage_errors("list_participant_judgements"):
            doc = self.participants.find_one({"_id": participant_id}, {"assignments": 1})
        if not doc:
            return []
        judgements = [
            Judgement.from_dict(subdoc["judgement"])
            for subdoc in doc.get("assignments", [])
            if subdoc.get("judgement")
        ]
        return sorted(judgements, key=lambda j: j.recorded_at, reverse=True)

    # =========================================================================
    # Withdrawal Operations
    # =========================================================================

    def withdrawn_items(self, item_ids: Iterable[ItemId]) -> Set[ItemId]:
        item_ids = list(item_ids)
        if not item_ids:
            return set()
        with storage_errors("withdrawn_items"):
            cursor = self.withdrawals.find({"_id": {"$in": item_ids}}, {"_id": 1})
            return {doc["_id"] for doc in cursor}

    def withdraw_item(self, item_id: ItemId, now: datetime) -> int:
        """
        Record the withdrawal, then cancel pending assignments.

        A claim transaction that read the catalog before the marker was
        written can still publish a pending assignment for the item. The
        scoring layer checks the marker on every read and re-applies the
        withdrawal, so such an assignment is cancelled before it is served.
        """
        with storage_errors("withdraw_item"):
            self.withdrawals.update_one(
                {"_id": item_id},
                {"$setOnInsert": {"withdrawn_at": now}},
                upsert=True,
            )
            result = self.participants.update_many(
                {"assignments": {"$elemMatch": {
                    "item_id": item_id,
                    "status": AssignmentStatus.PENDING.value,
                }}},
                {"$set": {
                    "assignments.$[a].status": AssignmentStatus.CANCELLED.value,
                    "assignments.$[a].cancelled_at": now,
                }},
                array_filters=[{"a.item_id": item_id, "a.status": AssignmentStatus.PENDING.value}],
            )
        return result.modified_count


def initialize_database(
    connection_string: str,
    db_name: str = "ratepool"
) -> MongoStore:
    """
    Create a MongoStore with settings-driven collection names.

    Args:
        connection_string: MongoDB connection URI
        db_name: Database name

    Returns:
        MongoStore instance (check ``connected`` before use)
    """
    return MongoStore(connection_string, db_name)
