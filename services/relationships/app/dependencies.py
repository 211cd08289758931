"""
Explicit construction of the relationship engine and its FastAPI accessors.

build_container() is the only place storage implementations are chosen;
everything downstream receives its collaborators through constructors.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.config import Settings
from app.database import init_db
from app.events.publishers import EventNotifier, build_notifier
from app.messaging.registry import (
    ConversationRegistry,
    InMemoryConversationRegistry,
    SqlConversationRegistry,
)
from app.messaging.service import MessagingService
from app.social_graph.graph import (
    InMemoryRelationshipGraph,
    RelationshipGraph,
    SqlRelationshipGraph,
)
from app.social_graph.policy import PolicyEngine, static_profile_visibility
from app.social_graph.service import RelationshipService
from app.users.directory import InMemoryUserDirectory, SqlUserDirectory, UserDirectory


@dataclass
class RelationshipContainer:
    users: UserDirectory
    graph: RelationshipGraph
    conversations: ConversationRegistry
    policy: PolicyEngine
    notifier: EventNotifier
    relationships: RelationshipService
    messaging: MessagingService


def build_container(settings: Settings) -> RelationshipContainer:
    users: UserDirectory
    graph: RelationshipGraph
    conversations: ConversationRegistry
    if settings.storage_backend == "memory":
        users = InMemoryUserDirectory(settings.memory_user_ids_list)
        memory_graph = InMemoryRelationshipGraph()
        graph = memory_graph
        conversations = InMemoryConversationRegistry(memory_graph)
    else:
        session_factory = init_db(settings.relationships_database_url)
        users = SqlUserDirectory(session_factory)
        graph = SqlRelationshipGraph(session_factory)
        conversations = SqlConversationRegistry(session_factory)

    policy = PolicyEngine(
        graph,
        conversations,
        profile_visibility=static_profile_visibility(settings.profiles_public_by_default),
    )
    notifier = build_notifier(settings)
    return RelationshipContainer(
        users=users,
        graph=graph,
        conversations=conversations,
        policy=policy,
        notifier=notifier,
        relationships=RelationshipService(graph, policy, notifier, users),
        messaging=MessagingService(conversations, graph, policy, notifier, users),
    )


# ── FastAPI accessors ─────────────────────────────────────────────────────────

def get_container(request: Request) -> RelationshipContainer:
    return request.app.state.container


def get_policy(request: Request) -> PolicyEngine:
    return get_container(request).policy


def get_relationship_service(request: Request) -> RelationshipService:
    return get_container(request).relationships


def get_messaging_service(request: Request) -> MessagingService:
    return get_container(request).messaging


def get_graph(request: Request) -> RelationshipGraph:
    return get_container(request).graph


def get_user_directory(request: Request) -> UserDirectory:
    return get_container(request).users
