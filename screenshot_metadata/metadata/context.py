import logging
from typing import Any, Mapping, Optional

from .. import config
from ..models import SidecarContext


def _capability(target: Any, name: str) -> Optional[Any]:
    """Calls target.name() when target offers it as a callable, else None."""
    if target is None:
        return None
    method = getattr(target, name, None)
    if not callable(method):
        return None
    return method()


def _clean_name(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _pack_name(pack: Any) -> Optional[str]:
    if pack is None:
        return None
    name = _clean_name(_capability(pack, 'name')) or _clean_name(getattr(pack, 'name', None))
    return name or _clean_name(str(pack))


def probe_shader_pack(component: Any) -> Optional[str]:
    """
    Asks an optional shader component which pack is active.
    Returns None when the component offers no usable name capability.
    """
    name = _clean_name(_capability(component, 'shader_pack_name'))
    if name:
        return name

    settings = _capability(component, 'config')
    if settings is not None:
        name = _clean_name(_capability(settings, 'shader_pack_name'))
        if name:
            return name
        name = _pack_name(_capability(settings, 'shader_pack'))
        if name:
            return name

    return _pack_name(_capability(component, 'shader_pack'))


def detect_shader_pack(component: Any) -> str:
    """'None' without a shader component, 'Unknown' when it cannot name its pack."""
    if component is None:
        return "None"
    try:
        return probe_shader_pack(component) or "Unknown"
    except Exception as e:
        logging.debug(f"Shader pack detection failed: {e}")
        return "Unknown"


def collect_sidecar_context(snapshot: Mapping[str, Any],
                            max_addons: int = config.MAX_ADDON_ENTRIES) -> SidecarContext:
    """
    Gathers resource packs, shader pack and the add-on inventory for the JSON sidecar.
    The add-on list is sorted by id and capped at max_addons entries.
    """
    packs = [str(p) for p in snapshot.get('resource_packs') or [] if p is not None]
    ctx = SidecarContext(
        resource_packs=packs,
        shader_pack=detect_shader_pack(snapshot.get('shader_component')),
    )

    addons = snapshot.get('addons')
    if addons is None:
        return ctx

    try:
        entries = sorted((str(a_id), str(version)) for a_id, version in addons)
    except (TypeError, ValueError) as e:
        logging.debug(f"Could not read add-on inventory: {e}")
        return ctx

    ctx.addon_count = len(entries)
    ctx.addons = [f"{a_id}@{version}" for a_id, version in entries[:max_addons]]
    ctx.addon_list_truncated = len(entries) > max_addons
    return ctx
