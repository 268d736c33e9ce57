"""Fold a flat entity list into name-keyed groups.

Process ids are recycled and an application may spawn or retire helpers
between polls, so groups key on name and are rebuilt from scratch every poll.
"""

from collections.abc import Iterable

from taskpulse.models import Entity, Group


def aggregate(entities: Iterable[Entity]) -> list[Group]:
    """Group entities by exact name, summing every channel.

    Icon policy: the first non-empty icon wins, except that a later
    app-classified member's icon replaces one already set.

    Returns groups in discovery order. Pure: the same input always yields
    the same groups.
    """
    groups: dict[str, Group] = {}

    for entity in entities:
        group = groups.get(entity.name)
        if group is None:
            groups[entity.name] = Group(
                name=entity.name,
                members=[entity],
                total_cpu=entity.cpu_usage,
                total_memory=entity.memory,
                total_disk=entity.disk_usage,
                total_network=entity.network_usage,
                total_gpu=entity.gpu_usage,
                is_app=entity.is_app,
                icon=entity.icon or None,
            )
            continue

        group.members.append(entity)
        group.total_cpu += entity.cpu_usage
        group.total_memory += entity.memory
        group.total_disk += entity.disk_usage
        group.total_network += entity.network_usage
        group.total_gpu += entity.gpu_usage
        if entity.is_app:
            group.is_app = True
        if entity.icon and (not group.icon or entity.is_app):
            group.icon = entity.icon

    return list(groups.values())
