from __future__ import annotations

from flask import Blueprint, request

from app.corpsite.db import db_session
from app.corpsite.listing import list_params_from_request, paginate
from app.corpsite.models import User
from app.corpsite.modules.hr.models import Department, Employee, Position
from app.corpsite.modules.hr.service import (
    VALID_STATUSES,
    create_department,
    create_employee,
    create_position,
    delete_department,
    delete_employee,
    delete_position,
    serialize_department,
    serialize_employee,
    serialize_position,
    update_department,
    update_employee,
    update_position,
)
from app.corpsite.rbac import current_user, require_login, require_permission
from app.corpsite.responses import BadRequest, NotFound, created, paginated, require_json, success

bp = Blueprint("hr", __name__)


def _get_or_404(model, obj_id: int, label: str):
    obj = db_session().get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def _int_arg(name: str) -> int | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"{name} must be an integer.") from None


# ---------- Departments ----------
@bp.get("/departments")
@require_permission("hr.view")
def departments_list():
    s = db_session()
    params = list_params_from_request(default_sort="name")
    q = s.query(Department)
    filters = {}
    if request.args.get("active") == "true":
        q = q.filter(Department.is_active.is_(True))
        filters["active"] = True
    page = paginate(
        q,
        params,
        sortable={"id": Department.id, "name": Department.name, "created_at": Department.created_at},
        searchable=(Department.name, Department.description),
        default_sort=("name", "asc"),
        tiebreak=Department.id,
    )
    return paginated([serialize_department(d) for d in page.items], page.pagination.to_dict(), {**page.filters, **filters})


@bp.get("/departments/<int:department_id>")
@require_permission("hr.view")
def departments_detail(department_id: int):
    return success(serialize_department(_get_or_404(Department, department_id, "Department")))


@bp.post("/departments")
@require_permission("hr.manage")
def departments_create():
    s = db_session()
    dept = create_department(s, require_json(), current_user())
    s.commit()
    return created(serialize_department(dept), "Department created")


@bp.put("/departments/<int:department_id>")
@require_permission("hr.manage")
def departments_update(department_id: int):
    s = db_session()
    dept = _get_or_404(Department, department_id, "Department")
    update_department(s, dept, require_json(), current_user())
    s.commit()
    return success(serialize_department(dept), "Department updated")


@bp.delete("/departments/<int:department_id>")
@require_permission("hr.manage")
def departments_delete(department_id: int):
    s = db_session()
    dept = _get_or_404(Department, department_id, "Department")
    delete_department(s, dept, current_user())
    s.commit()
    return success(message="Department deleted")


# ---------- Positions ----------
@bp.get("/positions")
@require_permission("hr.view")
def positions_list():
    s = db_session()
    params = list_params_from_request(default_sort="name")
    q = s.query(Position)
    filters: dict = {}
    if request.args.get("active") == "true":
        q = q.filter(Position.is_active.is_(True))
        filters["active"] = True
    dept_id = _int_arg("department_id")
    if dept_id is not None:
        q = q.filter(Position.department_id == dept_id)
        filters["department_id"] = dept_id
    page = paginate(
        q,
        params,
        sortable={"id": Position.id, "name": Position.name, "created_at": Position.created_at},
        searchable=(Position.name, Position.description),
        default_sort=("name", "asc"),
        tiebreak=Position.id,
    )
    return paginated([serialize_position(p) for p in page.items], page.pagination.to_dict(), {**page.filters, **filters})


@bp.get("/positions/<int:position_id>")
@require_permission("hr.view")
def positions_detail(position_id: int):
    return success(serialize_position(_get_or_404(Position, position_id, "Position")))


@bp.post("/positions")
@require_permission("hr.manage")
def positions_create():
    s = db_session()
    pos = create_position(s, require_json(), current_user())
    s.commit()
    return created(serialize_position(pos), "Position created")


@bp.put("/positions/<int:position_id>")
@require_permission("hr.manage")
def positions_update(position_id: int):
    s = db_session()
    pos = _get_or_404(Position, position_id, "Position")
    update_position(s, pos, require_json(), current_user())
    s.commit()
    return success(serialize_position(pos), "Position updated")


@bp.delete("/positions/<int:position_id>")
@require_permission("hr.manage")
def positions_delete(position_id: int):
    s = db_session()
    pos = _get_or_404(Position, position_id, "Position")
    delete_position(s, pos, current_user())
    s.commit()
    return success(message="Position deleted")


# ---------- Employees ----------
@bp.get("/employees")
@require_permission("hr.view")
def employees_list():
    s = db_session()
    params = list_params_from_request(default_sort="id")
    q = s.query(Employee).join(Employee.user).outerjoin(Employee.position)
    filters: dict = {}

    status = (request.args.get("status") or "").strip()
    if status:
        if status not in VALID_STATUSES:
            raise BadRequest(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
        q = q.filter(Employee.status == status)
        filters["status"] = status
    dept_id = _int_arg("department_id")
    if dept_id is not None:
        q = q.filter(Employee.department_id == dept_id)
        filters["department_id"] = dept_id

    page = paginate(
        q,
        params,
        sortable={
            "id": Employee.id,
            "start_date": Employee.start_date,
            "status": Employee.status,
            "salary": Employee.salary,
            "email": User.email,
        },
        searchable=(User.username, User.email, User.first_name, User.last_name, Position.name),
        default_sort=("id", "asc"),
        tiebreak=Employee.id,
    )
    return paginated([serialize_employee(e) for e in page.items], page.pagination.to_dict(), {**page.filters, **filters})


@bp.get("/employees/<int:employee_id>")
@require_permission("hr.view")
def employees_detail(employee_id: int):
    return success(serialize_employee(_get_or_404(Employee, employee_id, "Employee")))


@bp.post("/employees")
@require_permission("hr.manage")
def employees_create():
    s = db_session()
    emp = create_employee(s, require_json(), current_user())
    s.commit()
    return created(serialize_employee(emp), "Employee created")


@bp.put("/employees/<int:employee_id>")
@require_permission("hr.manage")
def employees_update(employee_id: int):
    s = db_session()
    emp = _get_or_404(Employee, employee_id, "Employee")
    update_employee(s, emp, require_json(), current_user())
    s.commit()
    return success(serialize_employee(emp), "Employee updated")


@bp.delete("/employees/<int:employee_id>")
@require_permission("hr.manage")
def employees_delete(employee_id: int):
    s = db_session()
    emp = _get_or_404(Employee, employee_id, "Employee")
    delete_employee(s, emp, current_user())
    s.commit()
    return success(message="Employee deleted")


@bp.get("/my-employee-profile")
@require_login
def my_employee_profile():
    s = db_session()
    emp = s.query(Employee).filter(Employee.user_id == current_user().id).one_or_none()
    if emp is None:
        raise NotFound("Employee profile not found")
    return success(serialize_employee(emp))
