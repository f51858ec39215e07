# ideamarket/models.py

import uuid
from datetime import datetime, timezone

from werkzeug.security import check_password_hash, generate_password_hash

from . import db


def utcnow():
    return datetime.now(timezone.utc)

def new_id():
    return str(uuid.uuid4())

def isoformat(value):
    return value.isoformat() if value else None


class IdeaStatus:
    PUBLISHED = 'published'
    CLOSED = 'closed'
    SOLDOUT = 'soldout'
    OVERDUE = 'overdue'

    ALL = (PUBLISHED, CLOSED, SOLDOUT, OVERDUE)


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(320), unique=True, nullable=False)
    display_name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), default='user', nullable=False)
    password_hash = db.Column(db.String(256), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    details = db.relationship('UserDetails', backref='profile', uselist=False,
                              cascade='all, delete-orphan')

    @property
    def is_admin(self):
        return self.role == 'admin'

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'display_name': self.display_name,
            'role': self.role,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Profile {self.email}>'


class UserDetails(db.Model):
    """Extended, admin-managed details. At most one row per profile."""
    __tablename__ = 'user_details'

    UPDATABLE = (
        'full_name', 'email', 'bank_name', 'branch_name', 'account_type',
        'account_number', 'account_holder', 'gender', 'birth_date', 'prefecture',
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), unique=True, nullable=False)
    full_name = db.Column(db.String(200))
    email = db.Column(db.String(320))
    bank_name = db.Column(db.String(200))
    branch_name = db.Column(db.String(200))
    account_type = db.Column(db.String(20))
    account_number = db.Column(db.String(64))
    account_holder = db.Column(db.String(200))
    gender = db.Column(db.String(20))
    birth_date = db.Column(db.String(32))
    prefecture = db.Column(db.String(32))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        data = {field: getattr(self, field) for field in self.UPDATABLE}
        data.update({
            'id': self.id,
            'user_id': self.user_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        })
        return data


class Idea(db.Model):
    __tablename__ = 'ideas'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    mmb_no = db.Column(db.Integer, unique=True, nullable=False)
    author_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    detail = db.Column(db.Text, nullable=True)
    price = db.Column(db.Integer, default=0, nullable=False)
    is_exclusive = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), default=IdeaStatus.PUBLISHED, nullable=False)
    purchase_count = db.Column(db.Integer, default=0, nullable=False)
    deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    author = db.relationship('Profile', backref=db.backref('ideas', lazy=True))
    comments = db.relationship('Comment', backref='idea', lazy=True,
                               order_by='Comment.created_at', cascade='all, delete-orphan')

    @property
    def is_purchasable(self):
        if self.is_exclusive and self.status == IdeaStatus.SOLDOUT:
            return False
        return self.status == IdeaStatus.CLOSED

    def to_dict(self, with_detail=False):
        data = {
            'id': self.id,
            'mmb_no': self.mmb_no,
            'author_id': self.author_id,
            'title': self.title,
            'summary': self.summary,
            'price': self.price,
            'is_exclusive': self.is_exclusive,
            'status': self.status,
            'purchase_count': self.purchase_count,
            'deadline': isoformat(self.deadline),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if with_detail:
            data['detail'] = self.detail
        return data

    def __repr__(self):
        return f'<Idea {self.mmb_no} {self.status}>'


class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    idea_id = db.Column(db.String(36), db.ForeignKey('ideas.id'), nullable=False)
    author_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    author = db.relationship('Profile')

    def to_dict(self):
        return {
            'id': self.id,
            'idea_id': self.idea_id,
            'author_id': self.author_id,
            'display_name': self.author.display_name if self.author else None,
            'text': self.text,
            'created_at': isoformat(self.created_at),
        }


class Sold(db.Model):
    """A purchase of an idea by a buyer."""
    __tablename__ = 'sold'
    __table_args__ = (
        db.UniqueConstraint('idea_id', 'user_id', name='uq_sold_idea_user'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    idea_id = db.Column(db.String(36), db.ForeignKey('ideas.id'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    is_paid = db.Column(db.Boolean, default=False, nullable=False)
    phone_number = db.Column(db.String(32), nullable=False)
    company = db.Column(db.String(200), nullable=False)
    manager = db.Column(db.String(200), nullable=False)
    industry = db.Column(db.String(200), nullable=True)
    formal_documentation = db.Column(db.Boolean, default=False, nullable=False)
    amount = db.Column(db.Integer, default=0, nullable=False)
    stripe_session_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    idea = db.relationship('Idea', backref=db.backref('purchases', lazy=True))
    buyer = db.relationship('Profile', backref=db.backref('purchases', lazy=True))

    def to_dict(self, embed=False):
        data = {
            'id': self.id,
            'idea_id': self.idea_id,
            'user_id': self.user_id,
            'is_paid': self.is_paid,
            'phone_number': self.phone_number,
            'company': self.company,
            'manager': self.manager,
            'industry': self.industry,
            'formal_documentation': self.formal_documentation,
            'amount': self.amount,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if embed:
            idea = self.idea
            buyer = self.buyer
            data['ideas'] = {
                'id': idea.id, 'title': idea.title,
                'mmb_no': idea.mmb_no, 'status': idea.status,
            } if idea else None
            data['profiles'] = {
                'id': buyer.id, 'display_name': buyer.display_name, 'role': buyer.role,
            } if buyer else None
        return data

    def __repr__(self):
        return f'<Sold {self.id} paid={self.is_paid}>'


# Log tables. These are written by the app and exported by admins as CSV.

class LoginHistory(db.Model):
    __tablename__ = 'login_history'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=True)
    login_status = db.Column(db.String(20), nullable=False)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    failure_reason = db.Column(db.String(200))
    login_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class BlogViewHistory(db.Model):
    __tablename__ = 'blog_view_history'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    blog_id = db.Column(db.String(100), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=True)
    session_id = db.Column(db.String(100))
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    view_date = db.Column(db.Date, default=lambda: utcnow().date())
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class AccessLog(db.Model):
    __tablename__ = 'access_logs'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=True)
    session_id = db.Column(db.String(100))
    request_method = db.Column(db.String(10), nullable=False)
    request_path = db.Column(db.Text, nullable=False)
    request_query = db.Column(db.Text)
    response_status = db.Column(db.Integer)
    response_time_ms = db.Column(db.Integer)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    referer = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class ErrorLog(db.Model):
    __tablename__ = 'error_logs'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=True)
    error_level = db.Column(db.String(20), default='error', nullable=False)
    error_code = db.Column(db.String(50))
    error_message = db.Column(db.Text, nullable=False)
    error_stack = db.Column(db.Text)
    request_path = db.Column(db.Text)
    request_method = db.Column(db.String(10))
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    additional_info = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class SystemLog(db.Model):
    __tablename__ = 'system_logs'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=True)
    log_type = db.Column(db.String(30), default='other', nullable=False)
    action = db.Column(db.String(100), nullable=False)
    target_table = db.Column(db.String(100))
    target_id = db.Column(db.String(100))
    description = db.Column(db.Text)
    before_data = db.Column(db.JSON)
    after_data = db.Column(db.JSON)
    ip_address = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
