"""
Google product taxonomy search and browse
"""

from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from retail_api.models import TaxonomyCategory

PATH_SEPARATOR = " > "
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 100


def search_taxonomy(
    session: Session,
    query: str,
    branch: Optional[str] = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> List[TaxonomyCategory]:
    """Case-insensitive match on name or path, shallowest first"""
    pattern = query.strip().lower()
    statement = select(TaxonomyCategory).where(
        or_(
            func.lower(TaxonomyCategory.name).contains(pattern, autoescape=True),
            func.lower(TaxonomyCategory.path).contains(pattern, autoescape=True),
        )
    )
    if branch:
        top = branch.strip()
        statement = statement.where(
            or_(
                TaxonomyCategory.path == top,
                TaxonomyCategory.path.startswith(f"{top}{PATH_SEPARATOR}", autoescape=True),
            )
        )
    statement = statement.order_by(TaxonomyCategory.level, TaxonomyCategory.name).limit(limit)
    return list(session.exec(statement).all())


def browse_taxonomy(session: Session, path: Optional[str] = None) -> List[Dict]:
    """Direct children of path (top level when empty), each flagged with hasChildren"""
    parent = (path or "").strip() or None
    if parent is None:
        statement = select(TaxonomyCategory).where(TaxonomyCategory.parent_path.is_(None))
    else:
        statement = select(TaxonomyCategory).where(TaxonomyCategory.parent_path == parent)
    children = list(session.exec(statement.order_by(TaxonomyCategory.name)).all())
    if not children:
        return []

    paths = [child.path for child in children]
    with_children = set(
        session.exec(
            select(TaxonomyCategory.parent_path)
            .where(TaxonomyCategory.parent_path.in_(paths))
            .distinct()
        ).all()
    )
    return [
        {
            "id": child.id,
            "name": child.name,
            "path": child.path,
            "level": child.level,
            "has_children": child.path in with_children,
        }
        for child in children
    ]
