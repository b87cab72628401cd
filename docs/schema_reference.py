"""
Database Schema Reference
=========================

This file provides a quick reference for all database tables and columns.
For actual SQLAlchemy models, see: quadriparlanti/db/models.py

"""

# ============================================================================
# USERS - Teachers (docente) and administrators
# ============================================================================
#
# | Column            | Type              | Constraints                    |
# |-------------------|-------------------|--------------------------------|
# | id                | UUID              | PRIMARY KEY                    |
# | email             | VARCHAR(255)      | NOT NULL, UNIQUE, INDEX        |
# | name              | VARCHAR(100)      | NULLABLE                       |
# | role              | ENUM(UserRole)    | NOT NULL, DEFAULT 'docente'    |
# | status            | ENUM(UserStatus)  | NOT NULL, DEFAULT 'invited'    |
# | bio               | TEXT              | NULLABLE                       |
# | profile_image_url | TEXT              | NULLABLE                       |
# | password_hash     | VARCHAR(255)      | NULLABLE until invite accepted |
# | created_at        | TIMESTAMP(TZ)     | NOT NULL, DEFAULT now()        |
# | updated_at        | TIMESTAMP(TZ)     | NULLABLE                       |
# | last_login_at     | TIMESTAMP(TZ)     | NULLABLE                       |
#
# Enums:
#   UserRole:   'docente' | 'admin'
#   UserStatus: 'active' | 'invited' | 'suspended'


# ============================================================================
# API_KEYS - Access keys issued at login
# ============================================================================
#
# | Column       | Type          | Constraints                        |
# |--------------|---------------|------------------------------------|
# | id           | UUID          | PRIMARY KEY                        |
# | user_id      | UUID          | NOT NULL, FK(users.id), INDEX      |
# | key_hash     | VARCHAR(255)  | NOT NULL, UNIQUE (bcrypt)          |
# | key_prefix   | VARCHAR(12)   | NOT NULL, INDEX ('qpk_' + 8 chars) |
# | name         | VARCHAR(100)  | NOT NULL                           |
# | is_active    | BOOLEAN       | NOT NULL, DEFAULT TRUE             |
# | created_at   | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()            |
# | expires_at   | TIMESTAMP(TZ) | NULLABLE                           |
# | last_used_at | TIMESTAMP(TZ) | NULLABLE                           |


# ============================================================================
# AUTH_TOKENS - One-time invitation / password recovery tokens
# ============================================================================
#
# | Column       | Type               | Constraints                   |
# |--------------|--------------------|-------------------------------|
# | id           | UUID               | PRIMARY KEY                   |
# | user_id      | UUID               | NOT NULL, FK(users.id), INDEX |
# | purpose      | ENUM(TokenPurpose) | NOT NULL                      |
# | token_hash   | VARCHAR(255)       | NOT NULL (bcrypt)             |
# | token_prefix | VARCHAR(12)        | NOT NULL, INDEX ('qpt_' ...)  |
# | created_at   | TIMESTAMP(TZ)      | NOT NULL, DEFAULT now()       |
# | expires_at   | TIMESTAMP(TZ)      | NOT NULL                      |
# | used_at      | TIMESTAMP(TZ)      | NULLABLE (single use)         |
#
# Enums:
#   TokenPurpose: 'invite' | 'recovery'


# ============================================================================
# THEMES - Bilingual categories, reached from QR codes
# ============================================================================
#
# | Column             | Type              | Constraints                 |
# |--------------------|-------------------|-----------------------------|
# | id                 | UUID              | PRIMARY KEY                 |
# | title_it           | VARCHAR(100)      | NOT NULL                    |
# | title_en           | VARCHAR(100)      | NULLABLE                    |
# | description_it     | TEXT              | NOT NULL                    |
# | description_en     | TEXT              | NULLABLE                    |
# | slug               | VARCHAR(120)      | NOT NULL, UNIQUE, INDEX     |
# | featured_image_url | TEXT              | NULLABLE                    |
# | status             | ENUM(ThemeStatus) | NOT NULL, DEFAULT 'draft'   |
# | display_order      | INTEGER           | NOT NULL, DEFAULT 0         |
# | created_by         | UUID              | NULLABLE, FK(users.id)      |
# | created_at         | TIMESTAMP(TZ)     | NOT NULL, DEFAULT now()     |
# | updated_at         | TIMESTAMP(TZ)     | NULLABLE                    |
#
# Enums:
#   ThemeStatus: 'draft' | 'published' | 'archived'


# ============================================================================
# WORKS - Student-project submissions
# ============================================================================
#
# | Column         | Type              | Constraints                     |
# |----------------|-------------------|---------------------------------|
# | id             | UUID              | PRIMARY KEY                     |
# | title_it       | VARCHAR(200)      | NOT NULL                        |
# | title_en       | VARCHAR(200)      | NULLABLE                        |
# | description_it | TEXT              | NOT NULL, DEFAULT ''            |
# | description_en | TEXT              | NULLABLE                        |
# | class_name     | VARCHAR(50)       | NOT NULL                        |
# | teacher_name   | VARCHAR(100)      | NOT NULL                        |
# | school_year    | VARCHAR(7)        | NULLABLE, INDEX ('2024-25')     |
# | status         | ENUM(WorkStatus)  | NOT NULL, DEFAULT 'draft', INDEX|
# | license        | ENUM(LicenseType) | NOT NULL, DEFAULT 'none'        |
# | tags           | JSON              | list of strings, max 10         |
# | view_count     | INTEGER           | NOT NULL, DEFAULT 0             |
# | edit_count     | INTEGER           | NOT NULL, DEFAULT 0             |
# | created_by     | UUID              | NOT NULL, FK(users.id), INDEX   |
# | created_at     | TIMESTAMP(TZ)     | NOT NULL, DEFAULT now()         |
# | updated_at     | TIMESTAMP(TZ)     | NULLABLE                        |
# | submitted_at   | TIMESTAMP(TZ)     | NULLABLE                        |
# | published_at   | TIMESTAMP(TZ)     | NULLABLE                        |
#
# Enums:
#   WorkStatus:  'draft' | 'pending_review' | 'needs_revision' | 'published' | 'archived'
#   LicenseType: 'none' | 'CC BY' | 'CC BY-SA' | 'CC BY-NC' | 'CC BY-NC-SA'
#
# Lifecycle (quadriparlanti/domain/work_lifecycle.py):
#   draft          --submit (owner)-->  pending_review
#   needs_revision --submit (owner)-->  pending_review
#   pending_review --approve (admin)--> published
#   pending_review --reject (admin)-->  needs_revision
#   published      --archive (admin)--> archived
#
# Relationships:
#   - work_themes:      MANY-TO-MANY -> themes
#   - work_attachments: ONE-TO-MANY (CASCADE DELETE)
#   - work_links:       ONE-TO-MANY (CASCADE DELETE)
#   - work_reviews:     ONE-TO-MANY (CASCADE DELETE)


# ============================================================================
# WORK_THEMES / WORK_ATTACHMENTS / WORK_LINKS / WORK_REVIEWS
# ============================================================================
#
# work_themes:      (work_id, theme_id) composite PK, created_at
# work_attachments: file_name, file_size_bytes (<= 10 MB), file_type ('pdf' | 'image'),
#                   mime_type, storage_path, thumbnail_path, uploaded_by, uploaded_at
# work_links:       url, link_type ('youtube' | 'vimeo' | 'drive' | 'other'),
#                   custom_label, preview_title, preview_thumbnail_url
# work_reviews:     reviewer_id, action ('approved' | 'rejected'), comments, reviewed_at
#                   (append-only; comments required for 'rejected')


# ============================================================================
# QR_CODES / QR_SCANS / WORK_VIEWS - Short links and analytics
# ============================================================================
#
# qr_codes:   theme_id (FK themes, CASCADE), short_code CHAR(6) UNIQUE from
#             [A-HJ-NP-Za-hj-np-z2-9], is_active, scan_count, last_scanned_at
# qr_scans:   qr_code_id, theme_id, scanned_at, hashed_ip (sha256 hex),
#             user_agent, device_type ('mobile' | 'tablet' | 'desktop' | 'unknown'), referer
# work_views: work_id, viewed_at, hashed_ip, referrer
#             ('theme_page' | 'search' | 'direct' | 'external'), user_agent, session_id
#
# hashed_ip = sha256(ip + daily_salt); the salt lives in config['daily_salt']
# and is rotated at midnight UTC by the worker beat schedule.


# ============================================================================
# CONFIG / AUDIT_LOGS
# ============================================================================
#
# config:     key (PK), value, description, updated_at, updated_by
# audit_logs: user_id, action, resource_type, resource_id, details (JSON),
#             ip_address, user_agent, created_at
#
# Action Examples:
#   'work.create', 'work.submit', 'work.approve', 'work.reject', 'work.archive'
#   'theme.create', 'theme.reorder', 'qr.create', 'qr.toggle'
#   'teacher.create', 'teacher.suspend', 'config.update'


# ============================================================================
# INDEXES
# ============================================================================
#
# | Table      | Index Name              | Columns      |
# |------------|-------------------------|--------------|
# | works      | ix_works_status         | status       |
# | works      | ix_works_created_at     | created_at   |
# | works      | ix_works_published_at   | published_at |
# | qr_codes   | ix_qr_codes_short_code  | short_code   |
# | qr_scans   | ix_qr_scans_scanned_at  | scanned_at   |
# | work_views | ix_work_views_viewed_at | viewed_at    |
