from sqlalchemy import func

from eventflow.constants import RejectionStatus, Stage
from eventflow.extensions import db
from eventflow.models import Program


def get_dashboard_stats():
    """Plain counts for the dashboard header."""
    return {
        'total': Program.query.count(),
        'active': Program.query.filter(Program.current_stage < Stage.ARCHIVED).count(),
        'completed': Program.query.filter_by(current_stage=Stage.ARCHIVED).count(),
        'rejected': Program.query.filter(Program.rejection_status.in_(
            [RejectionStatus.FINANCE, RejectionStatus.OPS])).count(),
        'pipeline_budget': db.session.query(func.coalesce(func.sum(Program.delivery_budget), 0)).scalar(),
        'by_stage': {
            stage: count for stage, count in
            db.session.query(Program.current_stage, func.count(Program.id)).group_by(Program.current_stage).all()
        },
    }
