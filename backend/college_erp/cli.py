#!/usr/bin/env python3
"""
College ERP operator CLI

Usage:
    college-erp init-db                      # Create missing tables
    college-erp seed-demo                    # Demo course, curriculum, staff and a student
    college-erp create-user EMAIL --role HOD # Add a staff or accountant login
    college-erp issue-token EMAIL            # Print a bearer token for a user
    college-erp promote SEMESTER_ID          # Promote COMPLETED students to the next semester
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import select

console = Console()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="college-erp",
        description="College ERP - admission and semester progression operator tools",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    subparsers.add_parser("init-db", help="Create missing database tables")
    subparsers.add_parser("seed-demo", help="Insert a demo course, curriculum, users and student")

    user_parser = subparsers.add_parser("create-user", help="Create a login")
    user_parser.add_argument("email")
    user_parser.add_argument("--name", default=None)
    user_parser.add_argument(
        "--role", default="ADMIN", choices=["ADMIN", "HOD", "ACCOUNTANT", "STUDENT"]
    )

    token_parser = subparsers.add_parser("issue-token", help="Print an access token for a user")
    token_parser.add_argument("email")
    token_parser.add_argument("--minutes", type=int, default=None, help="Token lifetime")

    promote_parser = subparsers.add_parser("promote", help="Promote COMPLETED students of a semester")
    promote_parser.add_argument("semester_id")

    return parser


async def _init_db() -> int:
    from college_erp.core.database import init_db, close_db

    await init_db()
    await close_db()
    console.print("[green]✓ Database tables ready[/green]")
    return 0


async def _create_user(email: str, role: str, name: Optional[str] = None, student_id: Optional[str] = None):
    from college_erp.core.database import AsyncSessionLocal
    from college_erp.models import User, UserRole

    async with AsyncSessionLocal() as session:
        existing = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if existing is not None:
            return existing
        user = User(email=email, full_name=name, role=UserRole(role), is_active=True, student_id=student_id)
        session.add(user)
        await session.commit()
        return user


async def _seed_demo() -> int:
    from college_erp.core.database import AsyncSessionLocal, init_db, close_db
    from college_erp.models import SubjectType, UserRole
    from college_erp.repositories import SqlAlchemyUnitOfWork
    from college_erp.services.admission_service import AdmissionService
    from college_erp.services.audit import DatabaseAuditSink
    from college_erp.services.curriculum_service import CurriculumService
    from college_erp.services.student_service import StudentService

    await init_db()
    admin = await _create_user("admin@college.local", UserRole.ADMIN.value, "Demo Admin")
    await _create_user("hod@college.local", UserRole.HOD.value, "Demo HOD")

    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUnitOfWork(session)
        audit = DatabaseAuditSink()
        curriculum = CurriculumService(uow, audit)

        course = await uow.courses.get_by_code("BSC")
        if course is None:
            course = await curriculum.create_course("BSC", "Bachelor of Science", duration_years=3, actor=admin)
        academic_session = await curriculum.create_session("2024-27 Demo", 2024, 2027, actor=admin)
        semesters = await curriculum.establish_curriculum(course.id, actor=admin)

        first = semesters[0]
        for code, name, subject_type in (
            ("PHY101", "Physics I", SubjectType.MJC),
            ("MAT101", "Mathematics I", SubjectType.MIC),
            ("ENV101", "Environmental Studies", SubjectType.MDC),
            ("COM101", "Communication Skills", SubjectType.SEC),
            ("YOG101", "Yoga", SubjectType.VAC),
        ):
            await curriculum.create_subject(code, name, subject_type, first.id, actor=admin)

        student = await StudentService(uow, audit).create_student(
            "Demo Student", "student@college.local", course.id, session_id=academic_session.id, actor=admin
        )
        admission = await AdmissionService(uow, audit).create_admission(student.id, course.id, actor=admin)

    await _create_user("student@college.local", UserRole.STUDENT.value, "Demo Student", student_id=student.id)
    await close_db()

    table = Table(title="Demo data")
    table.add_column("Entity", style="cyan")
    table.add_column("ID")
    table.add_row("Course BSC", str(course.id))
    table.add_row(f"Semesters (1..{len(semesters)})", str(first.id) + " ...")
    table.add_row(f"Student {student.reg_no}", str(student.id))
    table.add_row("Admission (INITIATED)", str(admission.id))
    console.print(table)
    console.print("Logins: admin@college.local, hod@college.local, student@college.local")
    return 0


async def _issue_token(email: str, minutes: Optional[int]) -> int:
    from college_erp.core.database import AsyncSessionLocal, close_db
    from college_erp.core.security import create_access_token
    from college_erp.models import User

    async with AsyncSessionLocal() as session:
        user = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
    await close_db()

    if user is None:
        console.print(f"[red]✗ No user with email {email}[/red]")
        return 1

    token = create_access_token(
        {"sub": str(user.id), "role": user.role.value},
        expires_delta=timedelta(minutes=minutes) if minutes else None,
    )
    console.print(Panel(token, title=f"{user.email} ({user.role.value})", border_style="green"))
    return 0


async def _promote(semester_id: str) -> int:
    from college_erp.core.database import AsyncSessionLocal, close_db
    from college_erp.core.exceptions import CollegeERPError
    from college_erp.repositories import SqlAlchemyUnitOfWork
    from college_erp.services.audit import DatabaseAuditSink
    from college_erp.services.semester_service import SemesterService

    async with AsyncSessionLocal() as session:
        service = SemesterService(SqlAlchemyUnitOfWork(session), DatabaseAuditSink())
        try:
            result = await service.promote(semester_id)
        except CollegeERPError as e:
            console.print(f"[red]✗ {e.code}: {e.message}[/red]")
            return 1
        finally:
            await close_db()

    console.print(
        f"[green]✓ Promoted {len(result.promoted)} students[/green] "
        f"from semester {result.current_semester.number} to {result.next_semester.number}"
    )
    if result.skipped_student_ids:
        console.print(f"[yellow]Skipped {len(result.skipped_student_ids)}:[/yellow] "
                      + ", ".join(result.skipped_student_ids))
    return 0


async def _run(args) -> int:
    if args.command == "init-db":
        return await _init_db()
    if args.command == "seed-demo":
        return await _seed_demo()
    if args.command == "create-user":
        from college_erp.core.database import close_db

        user = await _create_user(args.email.lower(), args.role, args.name)
        await close_db()
        console.print(f"[green]✓ {user.email} ({user.role.value})[/green] id={user.id}")
        return 0
    if args.command == "issue-token":
        return await _issue_token(args.email.lower(), args.minutes)
    if args.command == "promote":
        return await _promote(args.semester_id)
    return 2


def main():
    """Main entry point"""
    args = create_parser().parse_args()
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
