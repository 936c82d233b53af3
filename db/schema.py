# SQL schema for Lessonbook database

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Families (billing/account unit)
CREATE TABLE IF NOT EXISTS families (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    trial_ends_at TEXT,
    school_days TEXT NOT NULL DEFAULT '1,2,3,4,5',
    curriculum_start_date TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Parents and students
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    family_id INTEGER NOT NULL,
    role TEXT NOT NULL CHECK(role IN ('parent', 'student')),
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL DEFAULT '',
    email TEXT UNIQUE,
    password_hash TEXT,
    is_primary_parent INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    FOREIGN KEY (family_id) REFERENCES families (id) ON DELETE CASCADE
);

-- Grade levels
CREATE TABLE IF NOT EXISTS grades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    order_index INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1
);

-- One profile per student user
CREATE TABLE IF NOT EXISTS student_profiles (
    user_id INTEGER PRIMARY KEY,
    family_id INTEGER NOT NULL,
    birth_date TEXT,
    current_grade_id INTEGER,
    points_total INTEGER NOT NULL DEFAULT 0,
    current_streak INTEGER NOT NULL DEFAULT 0,
    longest_streak INTEGER NOT NULL DEFAULT 0,
    last_completed_date TEXT,
    notes TEXT,
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (family_id) REFERENCES families (id) ON DELETE CASCADE,
    FOREIGN KEY (current_grade_id) REFERENCES grades (id) ON DELETE SET NULL
);

-- Subjects
CREATE TABLE IF NOT EXISTS subjects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    color TEXT NOT NULL DEFAULT '#6366f1',
    order_index INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1
);

-- Courses (grade x subject)
CREATE TABLE IF NOT EXISTS courses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    grade_id INTEGER NOT NULL,
    subject_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    total_weeks INTEGER NOT NULL DEFAULT 36,
    is_active INTEGER NOT NULL DEFAULT 1,
    FOREIGN KEY (grade_id) REFERENCES grades (id) ON DELETE CASCADE,
    FOREIGN KEY (subject_id) REFERENCES subjects (id) ON DELETE CASCADE
);

-- Weekly units
CREATE TABLE IF NOT EXISTS units (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    course_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    week_number INTEGER NOT NULL DEFAULT 1,
    memory_verse TEXT,
    memory_verse_reference TEXT,
    order_index INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (course_id) REFERENCES courses (id) ON DELETE CASCADE
);

-- Lessons
CREATE TABLE IF NOT EXISTS lessons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id INTEGER,
    course_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    week_number INTEGER NOT NULL DEFAULT 1,
    day_number INTEGER NOT NULL DEFAULT 1 CHECK(day_number BETWEEN 1 AND 5),
    order_index INTEGER NOT NULL DEFAULT 0,
    estimated_minutes INTEGER NOT NULL DEFAULT 20,
    objectives TEXT,
    teacher_script TEXT,
    discussion_questions TEXT,
    prayer_prompt TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    FOREIGN KEY (unit_id) REFERENCES units (id) ON DELETE SET NULL,
    FOREIGN KEY (course_id) REFERENCES courses (id) ON DELETE CASCADE
);

-- Lesson content blocks
CREATE TABLE IF NOT EXISTS lesson_content (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    lesson_id INTEGER NOT NULL,
    content_type TEXT NOT NULL DEFAULT 'other',
    title TEXT,
    content TEXT NOT NULL DEFAULT '',
    is_read_aloud INTEGER NOT NULL DEFAULT 0,
    for_student INTEGER NOT NULL DEFAULT 1,
    order_index INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (lesson_id) REFERENCES lessons (id) ON DELETE CASCADE
);

-- Activities (activity_type is open so new kinds can be catalogued before they are gradable)
CREATE TABLE IF NOT EXISTS activities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    lesson_id INTEGER NOT NULL,
    activity_type TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    instructions TEXT,
    question_text TEXT,
    activity_data TEXT,
    points INTEGER NOT NULL DEFAULT 10,
    hint TEXT,
    explanation TEXT,
    order_index INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (lesson_id) REFERENCES lessons (id) ON DELETE CASCADE
);

-- Per student/lesson progress
CREATE TABLE IF NOT EXISTS lesson_progress (
    student_id INTEGER NOT NULL,
    lesson_id INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'not_started' CHECK(status IN ('not_started', 'in_progress', 'completed')),
    points_earned INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    completed_at TEXT,
    PRIMARY KEY (student_id, lesson_id),
    FOREIGN KEY (student_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (lesson_id) REFERENCES lessons (id) ON DELETE CASCADE
);

-- Latest response per student/activity
CREATE TABLE IF NOT EXISTS activity_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL,
    activity_id INTEGER NOT NULL,
    response_data TEXT,
    is_correct INTEGER NOT NULL DEFAULT 0,
    points_earned INTEGER NOT NULL DEFAULT 0,
    attempts INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (student_id, activity_id),
    FOREIGN KEY (student_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (activity_id) REFERENCES activities (id) ON DELETE CASCADE
);

-- Achievements catalog
CREATE TABLE IF NOT EXISTS achievements (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    description TEXT,
    icon TEXT
);

CREATE TABLE IF NOT EXISTS student_achievements (
    student_id INTEGER NOT NULL,
    achievement_id INTEGER NOT NULL,
    earned_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (student_id, achievement_id),
    FOREIGN KEY (student_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (achievement_id) REFERENCES achievements (id) ON DELETE CASCADE
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_users_family ON users (family_id, role);
CREATE INDEX IF NOT EXISTS idx_courses_grade ON courses (grade_id);
CREATE INDEX IF NOT EXISTS idx_units_course ON units (course_id);
CREATE INDEX IF NOT EXISTS idx_lessons_course ON lessons (course_id, week_number, day_number, order_index);
CREATE INDEX IF NOT EXISTS idx_lesson_content_lesson ON lesson_content (lesson_id, order_index);
CREATE INDEX IF NOT EXISTS idx_activities_lesson ON activities (lesson_id, order_index);
CREATE INDEX IF NOT EXISTS idx_lesson_progress_student ON lesson_progress (student_id, status);
CREATE INDEX IF NOT EXISTS idx_activity_responses_student ON activity_responses (student_id);
CREATE INDEX IF NOT EXISTS idx_student_achievements_student ON student_achievements (student_id, earned_at);
"""

DEFAULT_GRADES = [
    "Kindergarten",
    "1st Grade",
    "2nd Grade",
    "3rd Grade",
    "4th Grade",
    "5th Grade",
    "6th Grade",
    "7th Grade",
    "8th Grade",
]

DEFAULT_SUBJECTS = [
    ("Bible", "#8b5cf6"),
    ("Math", "#3b82f6"),
    ("Language Arts", "#10b981"),
    ("Science", "#f59e0b"),
    ("History", "#ef4444"),
]
