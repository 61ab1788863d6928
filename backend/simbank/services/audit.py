from sqlalchemy.orm import Session
from simbank.models.audit_log import AuditLog


def log_event(
    s: Session,
    username: str,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    details: dict | None = None,
    commit: bool = True,
):
    row = AuditLog(
        username=username,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    s.add(row)
    if commit:
        s.commit()
    return row
