from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from campus.extensions import db
from .base import Role


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(512), nullable=False)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    role = db.Column(db.Enum(Role), nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    classes_taught = db.relationship('SchoolClass', back_populates='teacher', lazy=True)
    enrollments = db.relationship('Enrollment', back_populates='student', lazy=True,
                                  cascade="all, delete-orphan")
    notifications = db.relationship('Notification', back_populates='recipient', lazy=True,
                                    cascade="all, delete-orphan")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role.value if self.role else None,
            "email": self.email,
            "phone": self.phone,
        }


class ParentStudent(db.Model):
    __tablename__ = 'parent_students'

    id = db.Column(db.Integer, primary_key=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)
    relation = db.Column("relationship", db.String(50), nullable=True)

    parent = db.relationship('Profile', foreign_keys=[parent_id])
    student = db.relationship('Profile', foreign_keys=[student_id])

    __table_args__ = (
        db.UniqueConstraint('parent_id', 'student_id', name='uq_parent_student'),
    )


class TokenBlocklist(db.Model):
    __tablename__ = 'token_blocklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, index=True)
    token_type = db.Column(db.String(10), nullable=False, default="access")
    profile_id = db.Column(db.Integer, db.ForeignKey('profiles.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    profile = db.relationship("Profile", backref="revoked_tokens")
