from datetime import datetime, timezone

from boxgame import db


def utcnow():
    return datetime.now(timezone.utc)


def normalize_email(email):
    return (email or '').strip().lower()


class Participant(db.Model):
    __tablename__ = 'participant'
    identity = db.Column(db.String(128), primary_key=True)
    contact_email = db.Column(db.String(254), nullable=False)
    # Case-folded email; the unique index closes the check-then-insert race
    email_key = db.Column(db.String(254), nullable=False, unique=True, index=True)
    contact_phone = db.Column(db.String(32), nullable=True)
    box_choice = db.Column(db.Integer, nullable=False)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    outcome_correct = db.Column(db.Boolean, nullable=True)
    is_winner = db.Column(db.Boolean, nullable=False, default=False)
    prize_location = db.Column(db.String(128), nullable=True)
    prize_code = db.Column(db.String(32), nullable=True)
    sync_pending = db.Column(db.Boolean, nullable=False, default=True, index=True)
    revision = db.Column(db.Integer, nullable=False, default=1)

    def touch(self):
        """Mark the row dirty for the backup sheet."""
        self.sync_pending = True
        self.revision = (self.revision or 0) + 1

    def won_label(self):
        if self.is_winner:
            return 'TRUE'
        if self.outcome_correct is None:
            return ''
        return 'FALSE'

    def to_sheet_row(self):
        return [
            self.submitted_at.isoformat() if self.submitted_at else '',
            self.identity,
            self.contact_email,
            self.contact_phone or '',
            self.box_choice,
            self.won_label(),
            self.prize_location or '',
            self.prize_code or '',
        ]

    def to_result(self):
        return {
            'won': bool(self.outcome_correct),
            'yourChoice': self.box_choice,
            'isWinner': bool(self.is_winner),
            'prizeLocation': self.prize_location if self.is_winner else None,
            'prizeCode': self.prize_code if self.is_winner else None,
        }

    def to_dict(self):
        return {
            'identity': self.identity,
            'email': self.contact_email,
            'phone': self.contact_phone,
            'box_choice': self.box_choice,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'outcome_correct': self.outcome_correct,
            'is_winner': bool(self.is_winner),
            'prize_location': self.prize_location,
            'prize_code': self.prize_code,
            'sync_pending': bool(self.sync_pending),
        }


class GameState(db.Model):
    """Persisted phase flag so a restarted process can rebuild its session."""
    __tablename__ = 'game_state'
    id = db.Column(db.Integer, primary_key=True)
    phase = db.Column(db.String(16), nullable=False, default='collecting')
    correct_box = db.Column(db.Integer, nullable=True)
    revealed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    launched_at = db.Column(db.DateTime(timezone=True), nullable=True)
