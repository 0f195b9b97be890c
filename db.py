# db.py: local SQLite mirror of the hosted school database
# - Same table and column names as the hosted service, so repositories
#   run unchanged against either backend
# - Text UUID primary keys (the hosted tables use uuid ids)
# - Demo seed data with base64-encoded passwords, matching the login scheme

import base64
import json
import logging
import os
import random
import sqlite3
import uuid
from datetime import date, datetime, timedelta, timezone

from portal.settings import get_setting

logger = logging.getLogger(__name__)

DB_PATH = get_setting("SCHOOL_DB_PATH")


# -------------------------
# Connection
# -------------------------
def get_connection():
    """
    Create a SQLite connection returning rows as sqlite3.Row.
    """
    folder = os.path.dirname(DB_PATH)
    if folder:
        os.makedirs(folder, exist_ok=True)
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# -------------------------
# Schema
# -------------------------
def init_db():
    """
    Create every table the portal reads or writes, plus helpful indexes.
    """
    conn = get_connection()
    cur = conn.cursor()

    # ========= PEOPLE =========
    cur.execute("""
    CREATE TABLE IF NOT EXISTS admins (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        name TEXT,
        password TEXT,                            -- base64 of the raw password
        role TEXT DEFAULT 'admin',
        status TEXT DEFAULT 'active',
        created_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS students (
        id TEXT PRIMARY KEY,
        admission_id TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        dob TEXT,
        blood_group TEXT,
        class_name TEXT,                          -- "7" or legacy "7-A"
        section TEXT,
        class_section TEXT,                       -- "7-A"
        class_id TEXT,
        father_name TEXT,
        mother_name TEXT,
        address TEXT,
        profile_photo TEXT,
        status TEXT DEFAULT 'active',
        latest_percentage REAL,
        overall_percentage REAL,
        password TEXT,
        created_at TEXT,
        updated_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS teachers (
        id TEXT PRIMARY KEY,
        teacher_id TEXT NOT NULL UNIQUE,          -- login code, e.g. T001
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        subjects TEXT,                            -- JSON list of subject codes
        password TEXT,
        status TEXT DEFAULT 'active',
        created_at TEXT,
        updated_at TEXT
    );
    """)

    # ========= CLASSES & SUBJECTS =========
    cur.execute("""
    CREATE TABLE IF NOT EXISTS class_sections (
        id TEXT PRIMARY KEY,
        class_number INTEGER NOT NULL,
        section TEXT NOT NULL,
        class_section TEXT NOT NULL UNIQUE
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS classes (
        id TEXT PRIMARY KEY,
        class_section TEXT NOT NULL UNIQUE
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS subjects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        code TEXT,
        applicable_from_class INTEGER,
        applicable_to_class INTEGER
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS teacher_class_sections (
        id TEXT PRIMARY KEY,
        teacher_id TEXT NOT NULL,                 -- teachers.id
        class_section TEXT NOT NULL,
        subject TEXT NOT NULL
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS class_teachers (
        id TEXT PRIMARY KEY,
        class_section TEXT NOT NULL UNIQUE,
        teacher_id TEXT NOT NULL
    );
    """)

    # ========= ACADEMICS =========
    cur.execute("""
    CREATE TABLE IF NOT EXISTS marks (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL,                 -- students.id
        class_id TEXT,
        subject_id TEXT,
        subject TEXT,
        exam_type TEXT NOT NULL,
        marks_obtained REAL DEFAULT 0,
        total_marks REAL,
        remarks TEXT,
        created_by TEXT,
        updated_by TEXT,
        created_at TEXT,
        updated_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS marks_history (
        id TEXT PRIMARY KEY,
        mark_id TEXT NOT NULL,
        student_id TEXT,
        subject_id TEXT,
        exam_type TEXT,
        old_marks REAL,
        new_marks REAL,
        updated_by TEXT,
        created_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS daily_attendance (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL,
        date TEXT NOT NULL,                       -- YYYY-MM-DD
        status TEXT NOT NULL,                     -- present / absent / half_day
        remarks TEXT,
        marked_by TEXT,
        class_section TEXT,
        created_at TEXT,
        UNIQUE(student_id, date)
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS homework (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        subject TEXT,
        class_section TEXT,
        submission_date TEXT,
        created_by TEXT,
        status TEXT DEFAULT 'active',
        created_at TEXT
    );
    """)

    # ========= COMMUNICATION =========
    cur.execute("""
    CREATE TABLE IF NOT EXISTS notices (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        content TEXT,
        date TEXT,
        priority TEXT DEFAULT 'medium',           -- low / medium / high
        target_audience TEXT DEFAULT 'all',
        created_by TEXT,
        is_active INTEGER DEFAULT 1,
        created_at TEXT,
        updated_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS gallery_images (
        id TEXT PRIMARY KEY,
        image_url TEXT NOT NULL,
        title TEXT,
        description TEXT,
        display_order INTEGER DEFAULT 0,
        is_active INTEGER DEFAULT 1,
        uploaded_by TEXT,
        created_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS student_comments (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL,
        commented_by TEXT,                        -- teachers.id or admins.id
        commenter_role TEXT,                      -- teacher / admin
        comment_text TEXT NOT NULL,
        created_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS public_ratings (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT,
        phone TEXT,
        relationship TEXT,
        rating INTEGER NOT NULL,
        comment TEXT,
        status TEXT DEFAULT 'pending',            -- pending / approved / rejected
        created_at TEXT
    );
    """)

    # ========= INDEXES =========
    cur.execute("CREATE INDEX IF NOT EXISTS idx_students_class_section ON students (class_section);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_marks_student_exam ON marks (student_id, exam_type);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_attendance_class_date ON daily_attendance (class_section, date);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_comments_student ON student_comments (student_id, created_at);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_ratings_status ON public_ratings (status, created_at);")

    conn.commit()
    conn.close()


# -------------------------
# Seeding helpers
# -------------------------
def _encode(pw: str) -> str:
    return base64.b64encode(pw.encode("utf-8")).decode("ascii")


def _count(cur, table):
    cur.execute(f"SELECT COUNT(*) FROM {table}")
    return cur.fetchone()[0]


SEED_SUBJECTS = [
    # name, code, from, to
    ("Hindi", "HIN", 1, 10),
    ("English", "ENG", 1, 10),
    ("Maths", "MAT", 1, 10),
    ("EVS", "EVS", 1, 5),
    ("Computer", "CMP", 1, 8),
    ("S.St", "SST", 6, 10),
    ("Science", "SCI", 6, 10),
    ("AI", "AI", 9, 10),
]


def seed_classes_and_subjects():
    """
    Classes 1..10 with sections A/B, and the subject catalogue.
    """
    conn = get_connection()
    cur = conn.cursor()
    if _count(cur, "class_sections") == 0:
        for cls in range(1, 11):
            for sec in ("A", "B"):
                cs = f"{cls}-{sec}"
                cur.execute(
                    "INSERT INTO class_sections(id, class_number, section, class_section) VALUES (?, ?, ?, ?)",
                    (new_id(), cls, sec, cs),
                )
                cur.execute("INSERT INTO classes(id, class_section) VALUES (?, ?)", (new_id(), cs))
    if _count(cur, "subjects") == 0:
        for name, code, lo, hi in SEED_SUBJECTS:
            cur.execute(
                "INSERT INTO subjects(id, name, code, applicable_from_class, applicable_to_class) VALUES (?, ?, ?, ?, ?)",
                (new_id(), name, code, lo, hi),
            )
    conn.commit()
    conn.close()


def seed_people():
    """
    One admin, two teachers with class assignments, and a handful of students.
    """
    conn = get_connection()
    cur = conn.cursor()
    ts = now_iso()

    if _count(cur, "admins") == 0:
        cur.execute(
            "INSERT INTO admins(id, email, name, password, role, status, created_at) VALUES (?, ?, ?, ?, 'admin', 'active', ?)",
            (new_id(), "admin@school.com", "Admin User", _encode("admin123"), ts),
        )
        logger.info("Default admin created: admin@school.com")

    if _count(cur, "teachers") == 0:
        teachers = [
            ("T001", "Meera Sharma", "meera@school.com", {"7-A": ["Maths", "Science"], "7-B": ["Maths"]}, "7-A"),
            ("T002", "Rakesh Verma", "rakesh@school.com", {"9-A": ["English", "AI"]}, "9-A"),
        ]
        for code, name, email, assignments, class_teacher_of in teachers:
            tid = new_id()
            subject_names = sorted({s for subs in assignments.values() for s in subs})
            codes = [c for n, c, _, _ in SEED_SUBJECTS if n in subject_names]
            cur.execute("""
                INSERT INTO teachers(id, teacher_id, name, email, subjects, password, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 'active', ?, ?)
            """, (tid, code, name, email, json.dumps(codes), _encode("teacher123"), ts, ts))
            for cs, subs in assignments.items():
                for subject in subs:
                    cur.execute(
                        "INSERT INTO teacher_class_sections(id, teacher_id, class_section, subject) VALUES (?, ?, ?, ?)",
                        (new_id(), tid, cs, subject),
                    )
            cur.execute(
                "INSERT INTO class_teachers(id, class_section, teacher_id) VALUES (?, ?, ?)",
                (new_id(), class_teacher_of, tid),
            )

    if _count(cur, "students") == 0:
        students = [
            ("SSA001", "Aarav Gupta", "7", "A"),
            ("SSA002", "Diya Singh", "7", "A"),
            ("SSA003", "Kabir Mehta", "7", "B"),
            ("SSA004", "Zoya Khan", "9", "A"),
            ("SSA005", "Ishaan Rao", "9", "A"),
        ]
        for adm, name, cls, sec in students:
            cs = f"{cls}-{sec}"
            cur.execute("SELECT id FROM classes WHERE class_section=?", (cs,))
            row = cur.fetchone()
            cur.execute("""
                INSERT INTO students(id, admission_id, name, email, class_name, section, class_section, class_id,
                                     father_name, status, password, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'active', ?, ?, ?)
            """, (new_id(), adm, name, f"{adm.lower()}@student.school.com", cls, sec, cs,
                  row[0] if row else None, f"Mr. {name.split()[-1]}", _encode("student123"), ts, ts))
    conn.commit()
    conn.close()


def seed_marks_and_attendance():
    """
    PA1 marks for every student and ten days of attendance.
    """
    conn = get_connection()
    cur = conn.cursor()
    if _count(cur, "marks") > 0:
        conn.close()
        return

    rnd = random.Random(42)
    cur.execute("SELECT id, class_name, class_section, class_id FROM students")
    students = cur.fetchall()
    cur.execute("SELECT id, name, applicable_from_class, applicable_to_class FROM subjects")
    subjects = cur.fetchall()
    ts = now_iso()

    for s in students:
        cls = int(s["class_name"])
        total = 40 if cls >= 9 else 30
        for subj in subjects:
            if not (subj["applicable_from_class"] <= cls <= subj["applicable_to_class"]):
                continue
            cur.execute("""
                INSERT INTO marks(id, student_id, class_id, subject_id, subject, exam_type,
                                  marks_obtained, total_marks, remarks, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 'PA1', ?, ?, '', ?, ?)
            """, (new_id(), s["id"], s["class_id"], subj["id"], subj["name"],
                  rnd.randint(total // 2, total), total, ts, ts))

        for back in range(1, 11):
            day = (date.today() - timedelta(days=back)).isoformat()
            status = rnd.choices(["present", "absent", "half_day"], weights=[8, 1, 1])[0]
            cur.execute("""
                INSERT OR IGNORE INTO daily_attendance(id, student_id, date, status, class_section, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (new_id(), s["id"], day, status, s["class_section"], ts))

    conn.commit()
    conn.close()
    logger.info("Seeded marks and attendance for %d students", len(students))


def seed_notices_gallery_ratings():
    conn = get_connection()
    cur = conn.cursor()
    ts = now_iso()
    if _count(cur, "notices") == 0:
        for title, content, priority in [
            ("Annual Day", "Annual day celebrations on the last Saturday of the month.", "high"),
            ("PTM", "Parent-teacher meeting for classes 6 to 10 this Friday.", "medium"),
        ]:
            cur.execute("""
                INSERT INTO notices(id, title, content, date, priority, target_audience, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 'all', 1, ?, ?)
            """, (new_id(), title, content, ts, priority, ts, ts))
    if _count(cur, "gallery_images") == 0:
        for i in range(1, 4):
            cur.execute("""
                INSERT INTO gallery_images(id, image_url, title, display_order, is_active, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
            """, (new_id(), f"https://www.ssaami.ac.in/home-photos/{i}-1024.jpeg", f"School Photo {i}", i, ts))
    if _count(cur, "public_ratings") == 0:
        cur.execute("""
            INSERT INTO public_ratings(id, name, email, phone, relationship, rating, comment, status, created_at)
            VALUES (?, 'Sunita Gupta', 'sunita@example.com', '9000000001', 'Parent', 5,
                    'Caring teachers and a safe campus.', 'approved', ?)
        """, (new_id(), ts))
    conn.commit()
    conn.close()


def seed_demo_data():
    """Idempotent: every step only runs when its tables are empty."""
    seed_classes_and_subjects()
    seed_people()
    seed_marks_and_attendance()
    seed_notices_gallery_ratings()


# -------------------------
# Bootstrap
# -------------------------
def bootstrap(seed: bool = True):
    init_db()
    if seed:
        seed_demo_data()


if __name__ == "__main__":
    from portal.settings import setup_logging

    setup_logging()
    bootstrap()
    logger.info("Database ready at %s", DB_PATH)
