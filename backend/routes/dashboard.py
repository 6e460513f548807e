"""
Dashboard routes — leaderboard, school-wide progress and class breakdown.
"""

from fastapi import APIRouter, HTTPException

from core.cache import DashboardCache
from core.stats import compute_dashboard, compute_teacher_detail
from core.store import LoadResult, RosterStore, get_roster_source, is_record_list

router = APIRouter()

_cache = DashboardCache()


def _load() -> LoadResult:
    source = get_roster_source()
    if isinstance(source, RosterStore):
        _cache.watch(source)
    return source.load_data()


def _dashboard():
    result = _load()
    return {**_cache.get(result.students, result.teachers), "error": result.error}


@router.get("")
async def dashboard():
    """All dashboard views plus the load error message, if any."""
    return _dashboard()


@router.get("/leaderboard")
async def leaderboard():
    """Teachers ranked by renewal percentage."""
    return _dashboard()["teachers"]


@router.get("/overall")
async def overall():
    """School-wide renewal totals and percentage."""
    return _dashboard()["overall"]


@router.get("/classes")
async def classes():
    """Renewed / not-renewed counts per class level."""
    return _dashboard()["classes"]


@router.get("/teachers/{teacher_name:path}")
async def teacher_detail(teacher_name: str):
    """One teacher's leaderboard row and students."""
    result = _load()
    detail = compute_teacher_detail(result.students, result.teachers, teacher_name)
    if detail is None:
        raise HTTPException(404, f"Teacher '{teacher_name}' not found.")
    return detail


@router.post("/compute")
async def compute(payload: dict):
    """
    Stateless computation over a roster sent in the request.
    Expects: { "students": [...], "teachers": [...] }
    """
    students = payload.get("students") or []
    teachers = payload.get("teachers") or []
    if not is_record_list(students) or not is_record_list(teachers):
        raise HTTPException(400, "'students' and 'teachers' must be lists of flat objects.")
    return compute_dashboard(students, teachers)
