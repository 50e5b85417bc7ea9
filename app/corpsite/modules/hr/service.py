from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from app.corpsite.audit import record_event
from app.corpsite.models import User
from app.corpsite.modules.hr.models import Department, Employee, Position
from app.corpsite.responses import BadRequest, Conflict, NotFound
from app.corpsite.utils import clean_text, int_field, parse_amount, parse_bool, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


VALID_STATUSES = ("Active", "Probation", "Resigned")
DEFAULT_STATUS = "Probation"


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = str(s).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise BadRequest("Dates must be YYYY-MM-DD.", details=s) from None


def parse_salary(raw) -> Decimal:
    return parse_amount(raw, "Salary")


# ---------- Serializers ----------

def serialize_department(d: Department) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "is_active": d.is_active,
        "created_at": d.created_at.isoformat() if d.created_at else None,
        "updated_at": d.updated_at.isoformat() if d.updated_at else None,
    }


def serialize_position(p: Position) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "department_id": p.department_id,
        "department": {"id": p.department.id, "name": p.department.name} if p.department else None,
        "description": p.description,
        "is_active": p.is_active,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def serialize_employee(e: Employee) -> dict:
    u = e.user
    return {
        "id": e.id,
        "user_id": e.user_id,
        "user": {
            "id": u.id,
            "username": u.username,
            "email": u.email,
            "first_name": u.first_name,
            "last_name": u.last_name,
        }
        if u
        else None,
        "department_id": e.department_id,
        "department": e.department.name if e.department else None,
        "position_id": e.position_id,
        "position": e.position.name if e.position else None,
        "start_date": e.start_date.isoformat() if e.start_date else None,
        "status": e.status,
        "salary": float(e.salary) if e.salary is not None else None,
        "documents": json.loads(e.documents) if e.documents else [],
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "updated_at": e.updated_at.isoformat() if e.updated_at else None,
    }


# ---------- Departments ----------

def create_department(s: "Session", payload: dict, actor: User) -> Department:
    name = str_field(payload, "name")
    if not name:
        raise BadRequest("Name is required.")
    if s.query(Department).filter(Department.name == name).one_or_none():
        raise Conflict("A department with this name already exists.")

    now = datetime.utcnow()
    dept = Department(
        name=name,
        description=clean_text(payload.get("description")),
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        created_at=now,
        updated_at=now,
    )
    s.add(dept)
    s.flush()
    record_event(s, actor=actor, action="department.create", entity_type="Department", entity_id=dept.id, details={"name": name})
    return dept


def update_department(s: "Session", dept: Department, payload: dict, actor: User) -> Department:
    changes = {}
    if "name" in payload:
        name = str_field(payload, "name")
        if not name:
            raise BadRequest("Name is required.")
        if name != dept.name:
            clash = s.query(Department).filter(Department.name == name, Department.id != dept.id).one_or_none()
            if clash:
                raise Conflict("A department with this name already exists.")
            changes["name"] = {"old": dept.name, "new": name}
            dept.name = name
    if "description" in payload:
        new_desc = clean_text(payload.get("description"))
        if new_desc != dept.description:
            changes["description"] = {"old": dept.description, "new": new_desc}
            dept.description = new_desc
    if "is_active" in payload:
        new_active = parse_bool(payload["is_active"])
        if new_active != dept.is_active:
            changes["is_active"] = {"old": dept.is_active, "new": new_active}
            dept.is_active = new_active

    dept.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="department.update", entity_type="Department", entity_id=dept.id, details={"changes": changes})
    return dept


def delete_department(s: "Session", dept: Department, actor: User) -> None:
    positions = s.query(Position).filter(Position.department_id == dept.id).count()
    if positions:
        raise Conflict("Cannot delete department with existing positions.")
    employees = s.query(Employee).filter(Employee.department_id == dept.id).count()
    if employees:
        raise Conflict("Cannot delete department with assigned employees.")
    record_event(s, actor=actor, action="department.delete", entity_type="Department", entity_id=dept.id, details={"name": dept.name})
    s.delete(dept)


# ---------- Positions ----------

def _department_or_404(s: "Session", dept_id: int | None) -> Department | None:
    if dept_id is None:
        return None
    dept = s.get(Department, dept_id)
    if dept is None:
        raise NotFound("Department not found")
    return dept


def create_position(s: "Session", payload: dict, actor: User) -> Position:
    name = str_field(payload, "name")
    if not name:
        raise BadRequest("Name is required.")
    dept = _department_or_404(s, int_field(payload, "department_id"))

    now = datetime.utcnow()
    pos = Position(
        name=name,
        department_id=dept.id if dept else None,
        description=clean_text(payload.get("description")),
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        created_at=now,
        updated_at=now,
    )
    s.add(pos)
    s.flush()
    record_event(s, actor=actor, action="position.create", entity_type="Position", entity_id=pos.id, details={"name": name, "department_id": pos.department_id})
    return pos


def update_position(s: "Session", pos: Position, payload: dict, actor: User) -> Position:
    if "name" in payload:
        name = str_field(payload, "name")
        if not name:
            raise BadRequest("Name is required.")
        pos.name = name
    if "department_id" in payload:
        dept = _department_or_404(s, int_field(payload, "department_id"))
        pos.department_id = dept.id if dept else None
        pos.department = dept
    if "description" in payload:
        pos.description = clean_text(payload.get("description"))
    if "is_active" in payload:
        pos.is_active = parse_bool(payload["is_active"])
    pos.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="position.update", entity_type="Position", entity_id=pos.id, details={"name": pos.name, "department_id": pos.department_id})
    return pos


def delete_position(s: "Session", pos: Position, actor: User) -> None:
    if s.query(Employee).filter(Employee.position_id == pos.id).count():
        raise Conflict("Cannot delete position with assigned employees.")
    record_event(s, actor=actor, action="position.delete", entity_type="Position", entity_id=pos.id, details={"name": pos.name})
    s.delete(pos)


# ---------- Employees ----------

def _validate_status(payload: dict) -> str:
    status = str_field(payload, "status")
    if status not in VALID_STATUSES:
        raise BadRequest(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
    return status


def _position_or_404(s: "Session", pos_id: int | None) -> Position | None:
    if pos_id is None:
        return None
    pos = s.get(Position, pos_id)
    if pos is None:
        raise NotFound("Position not found")
    return pos


def _documents_json(raw) -> str | None:
    if raw in (None, "", []):
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raw = [raw]
    if not isinstance(raw, list):
        raise BadRequest("documents must be a list.")
    return json.dumps([str(d) for d in raw])


def create_employee(s: "Session", payload: dict, actor: User) -> Employee:
    user_id = int_field(payload, "user_id")
    if user_id is None:
        raise BadRequest("user_id is required.")
    user = s.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if s.query(Employee).filter(Employee.user_id == user_id).one_or_none():
        raise Conflict("Employee record already exists for this user.")

    dept = _department_or_404(s, int_field(payload, "department_id"))
    pos = _position_or_404(s, int_field(payload, "position_id"))
    if dept is None and pos is not None and pos.department_id is not None:
        dept = pos.department

    status = _validate_status(payload) if payload.get("status") else DEFAULT_STATUS
    now = datetime.utcnow()
    emp = Employee(
        user_id=user.id,
        department_id=dept.id if dept else None,
        position_id=pos.id if pos else None,
        start_date=parse_date(payload.get("start_date")) or date.today(),
        status=status,
        salary=parse_salary(payload.get("salary") or 0),
        documents=_documents_json(payload.get("documents")),
        created_at=now,
        updated_at=now,
    )
    s.add(emp)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="employee.create",
        entity_type="Employee",
        entity_id=emp.id,
        details={"user_id": user.id, "status": status, "position_id": emp.position_id},
    )
    return emp


def update_employee(s: "Session", emp: Employee, payload: dict, actor: User) -> Employee:
    """Only fields present in the payload change."""
    changes = {}

    if "department_id" in payload:
        dept = _department_or_404(s, int_field(payload, "department_id"))
        new_id = dept.id if dept else None
        if new_id != emp.department_id:
            changes["department_id"] = {"old": emp.department_id, "new": new_id}
            emp.department_id = new_id
            emp.department = dept

    if "position_id" in payload:
        pos = _position_or_404(s, int_field(payload, "position_id"))
        new_id = pos.id if pos else None
        if new_id != emp.position_id:
            changes["position_id"] = {"old": emp.position_id, "new": new_id}
            emp.position_id = new_id
            emp.position = pos

    if payload.get("start_date"):
        new_start = parse_date(payload.get("start_date"))
        if new_start != emp.start_date:
            changes["start_date"] = {"old": str(emp.start_date), "new": str(new_start)}
            emp.start_date = new_start

    if payload.get("status"):
        new_status = _validate_status(payload)
        if new_status != emp.status:
            changes["status"] = {"old": emp.status, "new": new_status}
            emp.status = new_status

    if "salary" in payload and payload.get("salary") not in (None, ""):
        new_salary = parse_salary(payload.get("salary"))
        if new_salary != emp.salary:
            changes["salary"] = {"old": str(emp.salary), "new": str(new_salary)}
            emp.salary = new_salary

    if "documents" in payload:
        emp.documents = _documents_json(payload.get("documents"))

    emp.updated_at = datetime.utcnow()
    record_event(s, actor=actor, action="employee.update", entity_type="Employee", entity_id=emp.id, details={"changes": changes})
    return emp


def delete_employee(s: "Session", emp: Employee, actor: User) -> None:
    record_event(s, actor=actor, action="employee.delete", entity_type="Employee", entity_id=emp.id, details={"user_id": emp.user_id})
    s.delete(emp)
