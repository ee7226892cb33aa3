class Stage:
    """The five lifecycle phases of a program."""
    INTAKE = 1
    FEASIBILITY = 2
    DELIVERY = 3
    CLOSURE = 4
    ARCHIVED = 5

    LABELS = {
        1: 'Intake',
        2: 'Feasibility',
        3: 'Delivery',
        4: 'Closure',
        5: 'Archived',
    }


class RejectionStatus:
    FINANCE = 'rejected_finance'
    OPS = 'rejected_ops'


class Role:
    """User roles for permissions. Admin may perform every operation."""
    ADMIN = 'Admin'
    SALES = 'Sales'
    OPS = 'Ops'
    FINANCE = 'Finance'

    ALL = (ADMIN, SALES, OPS, FINANCE)


class FileCategory:
    DOCUMENT = 'document'
    MEDIA = 'media'


# Roles allowed to run each operation. Admin is added by the permission check.
OPERATION_ROLES = {
    'create_program': {Role.SALES},
    'update_stage1': {Role.SALES},
    'update_stage2': {Role.OPS},
    'update_stage3': {Role.OPS},
    'update_stage4': {Role.OPS},
    'approve_finance': {Role.FINANCE},
    'reject_finance': {Role.FINANCE},
    'accept_handover': {Role.OPS},
    'reject_ops_handover': {Role.OPS},
    'move_to_stage3': {Role.OPS},
    'move_to_stage4': {Role.OPS},
    'move_to_stage5': {Role.OPS},
    'reopen_program': set(),
    'upload_file': {Role.SALES, Role.OPS, Role.FINANCE},
}

# Fallback values when no app config is available
REJECTION_REASON_MIN_LENGTH = 10
REOPEN_JUSTIFICATION_MIN_LENGTH = 10
ZFD_COMMENT_MIN_LENGTH = 10
ZFD_COMMENT_REQUIRED_AT_OR_BELOW = 3
OBJECTIVES_MIN_LENGTH = 10
