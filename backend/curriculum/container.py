"""Dependency injection container: wires the configured store to the services."""
from __future__ import annotations
from functools import lru_cache

from curriculum.application.auditing import Auditor
from curriculum.application.batch_service import BatchService
from curriculum.application.item_service import ItemService
from curriculum.application.node_service import NodeService
from curriculum.application.placement_service import PlacementService
from curriculum.core.config import STORE_BACKEND
from curriculum.domain.curriculum.resequencer import Resequencer
from curriculum.persistence.interfaces.audit_log import AuditLog
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore
from curriculum.persistence.repositories.sqlite.sqlite_audit_log import SqliteAuditLog
from curriculum.persistence.repositories.sqlite.sqlite_curriculum_store import SqliteCurriculumStore
from curriculum.persistence.repositories.supabase.postgrest import PostgrestClient
from curriculum.persistence.repositories.supabase.supabase_audit_log import SupabaseAuditLog
from curriculum.persistence.repositories.supabase.supabase_curriculum_store import SupabaseCurriculumStore


def uses_supabase() -> bool:
    return STORE_BACKEND == "supabase"


@lru_cache(maxsize=1)
def get_postgrest_client() -> PostgrestClient:
    return PostgrestClient()


@lru_cache(maxsize=1)
def get_store() -> CurriculumStore:
    if uses_supabase():
        return SupabaseCurriculumStore(get_postgrest_client())
    return SqliteCurriculumStore()


@lru_cache(maxsize=1)
def get_audit_log() -> AuditLog:
    if uses_supabase():
        return SupabaseAuditLog(get_postgrest_client())
    return SqliteAuditLog()


@lru_cache(maxsize=1)
def get_auditor() -> Auditor:
    return Auditor(get_audit_log())


@lru_cache(maxsize=1)
def get_resequencer() -> Resequencer:
    return Resequencer()


@lru_cache(maxsize=1)
def get_item_service() -> ItemService:
    return ItemService(store=get_store(), auditor=get_auditor(), resequencer=get_resequencer())


@lru_cache(maxsize=1)
def get_node_service() -> NodeService:
    return NodeService(
        store=get_store(),
        items=get_item_service(),
        auditor=get_auditor(),
        resequencer=get_resequencer(),
    )


@lru_cache(maxsize=1)
def get_placement_service() -> PlacementService:
    return PlacementService(store=get_store(), auditor=get_auditor(), resequencer=get_resequencer())


@lru_cache(maxsize=1)
def get_batch_service() -> BatchService:
    return BatchService(store=get_store(), auditor=get_auditor(), resequencer=get_resequencer())
