from datetime import datetime
from campus.extensions import db

class AttendanceRecord(db.Model):
    __tablename__ = 'attendance'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)  # present, absent, late, excused
    check_in_time = db.Column(db.String(8), nullable=True)  # HH:MM
    location_verified = db.Column(db.Boolean, default=False, nullable=False)
    marked_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = db.relationship('Profile', foreign_keys=[student_id])
    marker = db.relationship('Profile', foreign_keys=[marked_by])
    school_class = db.relationship('SchoolClass')

    __table_args__ = (
        db.UniqueConstraint('student_id', 'class_id', 'date', name='uq_attendance_student_class_date'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "student_name": self.student.full_name if self.student else None,
            "class_id": self.class_id,
            "class_name": self.school_class.name if self.school_class else None,
            "date": self.date.isoformat(),
            "status": self.status,
            "check_in_time": self.check_in_time,
            "location_verified": self.location_verified,
            "marked_by": self.marked_by,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
