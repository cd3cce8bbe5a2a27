from datetime import datetime, date
from campus.extensions import db


class School(db.Model):
    __tablename__ = 'schools'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    contact_number = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(120), nullable=True)

    classes = db.relationship('SchoolClass', back_populates='school', lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "contact_number": self.contact_number,
            "email": self.email
        }


class SchoolClass(db.Model):
    __tablename__ = 'classes'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    grade = db.Column(db.String(20), nullable=False)
    section = db.Column(db.String(20), nullable=False)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    school = db.relationship('School', back_populates='classes')
    teacher = db.relationship('Profile', back_populates='classes_taught')
    enrollments = db.relationship('Enrollment', back_populates='school_class', lazy=True,
                                  cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "grade": self.grade,
            "section": self.section,
            "school_id": self.school_id,
            "teacher_id": self.teacher_id,
        }


class Enrollment(db.Model):
    __tablename__ = 'student_classes'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False, index=True)
    enrollment_date = db.Column(db.Date, default=date.today)

    student = db.relationship('Profile', back_populates='enrollments')
    school_class = db.relationship('SchoolClass', back_populates='enrollments')

    __table_args__ = (
        db.UniqueConstraint('student_id', 'class_id', name='uq_student_class'),
    )
