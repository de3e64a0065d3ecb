import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)

WEBSITE_STATUSES = ('active', 'paused', 'error')
IDEA_STATUSES = ('pending', 'approved', 'rejected')
DRAFT_STATUSES = ('draft', 'review', 'pr_created', 'merged')
HISTORY_STATUSES = ('success', 'failed', 'pending')

TEMP_USERNAME = 'temp'


def _uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    """ISO timestamp in UTC; SQLite hands back naive datetimes"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(100), nullable=False, unique=True)
    password = db.Column(db.String(200), nullable=False)
    github_token = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    websites = db.relationship('Website', back_populates='user', cascade='all, delete-orphan')


class Website(db.Model):
    __tablename__ = 'websites'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    url = db.Column(db.String(500), nullable=False)
    keywords = db.Column(db.JSON, nullable=False, default=list)
    tone = db.Column(db.String(200))
    audience = db.Column(db.String(200))
    status = db.Column(db.Enum(*WEBSITE_STATUSES, name='website_status'), nullable=False, default='active')
    github_repo = db.Column(db.String(300))
    github_branch = db.Column(db.String(100), default='main')
    github_path = db.Column(db.String(300), default='blog')
    cta_text = db.Column(db.String(200))
    cta_url = db.Column(db.String(500))
    min_word_count = db.Column(db.Integer, default=1000)
    max_word_count = db.Column(db.Integer, default=3000)
    total_articles = db.Column(db.Integer, nullable=False, default=0)
    last_generated = db.Column(db.DateTime(timezone=True))
    next_scheduled = db.Column(db.DateTime(timezone=True))
    scraped_data = db.Column(db.JSON)
    last_scraped = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship('User', back_populates='websites')
    ideas = db.relationship('ArticleIdea', back_populates='website', cascade='all, delete-orphan')
    drafts = db.relationship('Draft', back_populates='website', cascade='all, delete-orphan')
    history = db.relationship('GenerationHistory', back_populates='website', cascade='all, delete-orphan')

    def to_dict(self, include_analysis=True):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'name': self.name,
            'url': self.url,
            'keywords': self.keywords or [],
            'tone': self.tone,
            'audience': self.audience,
            'status': self.status,
            'githubRepo': self.github_repo,
            'githubBranch': self.github_branch,
            'githubPath': self.github_path,
            'ctaText': self.cta_text,
            'ctaUrl': self.cta_url,
            'minWordCount': self.min_word_count,
            'maxWordCount': self.max_word_count,
            'totalArticles': self.total_articles or 0,
            'lastGenerated': isoformat(self.last_generated),
            'nextScheduled': isoformat(self.next_scheduled),
            'lastScraped': isoformat(self.last_scraped),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
        if include_analysis:
            data['scrapedData'] = self.scraped_data
        return data

    def scraping_status(self):
        scraped = self.scraped_data if isinstance(self.scraped_data, dict) else None
        insights = (scraped or {}).get('seoInsights') or {}
        return {
            'websiteId': self.id,
            'name': self.name,
            'url': self.url,
            'isScraped': bool(scraped),
            'lastScraped': isoformat(self.last_scraped),
            'stats': {
                'faqsCount': len(scraped.get('faqs') or []),
                'keyTopicsCount': len(scraped.get('keyTopics') or []),
                'commonQuestionsCount': len(scraped.get('commonQuestions') or []),
                'primaryKeywordsCount': len(insights.get('primaryKeywords') or []),
                'contentGapsCount': len(insights.get('contentGaps') or []),
                'recommendedTopicsCount': len(insights.get('recommendedTopics') or []),
            } if scraped else None,
            'summary': (scraped or {}).get('summary') or None,
        }


class ArticleIdea(db.Model):
    __tablename__ = 'article_ideas'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    website_id = db.Column(db.String(36), db.ForeignKey('websites.id', ondelete='CASCADE'), nullable=False)
    headline = db.Column(db.Text, nullable=False)
    confidence = db.Column(db.Integer, nullable=False)
    keywords = db.Column(db.JSON, nullable=False, default=list)
    estimated_words = db.Column(db.Integer, nullable=False)
    seo_score = db.Column(db.Integer, nullable=False)
    status = db.Column(db.Enum(*IDEA_STATUSES, name='idea_status'), nullable=False, default='pending')
    priority = db.Column(db.Integer)
    scheduled_date = db.Column(db.DateTime(timezone=True))
    extra = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    website = db.relationship('Website', back_populates='ideas')
    drafts = db.relationship('Draft', back_populates='article_idea', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'websiteId': self.website_id,
            'headline': self.headline,
            'confidence': self.confidence,
            'keywords': self.keywords or [],
            'estimatedWords': self.estimated_words,
            'seoScore': self.seo_score,
            'status': self.status,
            'priority': self.priority,
            'scheduledDate': isoformat(self.scheduled_date),
            'metadata': self.extra,
            'createdAt': isoformat(self.created_at),
        }


class Draft(db.Model):
    __tablename__ = 'drafts'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    article_idea_id = db.Column(db.String(36), db.ForeignKey('article_ideas.id', ondelete='CASCADE'), nullable=False)
    website_id = db.Column(db.String(36), db.ForeignKey('websites.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.Text, nullable=False)
    content = db.Column(db.Text, nullable=False)
    excerpt = db.Column(db.Text, nullable=False, default='')
    word_count = db.Column(db.Integer, nullable=False)
    readability_score = db.Column(db.Integer, nullable=False)
    keyword_density = db.Column(db.Float, nullable=False, default=2.5)
    status = db.Column(db.Enum(*DRAFT_STATUSES, name='draft_status'), nullable=False, default='draft')
    pr_url = db.Column(db.String(500))
    frontmatter = db.Column(db.JSON)
    image_url = db.Column(db.String(1000))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    website = db.relationship('Website', back_populates='drafts')
    article_idea = db.relationship('ArticleIdea', back_populates='drafts')

    def to_dict(self):
        return {
            'id': self.id,
            'articleIdeaId': self.article_idea_id,
            'websiteId': self.website_id,
            'title': self.title,
            'content': self.content,
            'excerpt': self.excerpt,
            'wordCount': self.word_count,
            'readabilityScore': self.readability_score,
            'keywordDensity': self.keyword_density,
            'status': self.status,
            'prUrl': self.pr_url,
            'frontmatter': self.frontmatter,
            'imageUrl': self.image_url,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


class GenerationHistory(db.Model):
    """Append-only audit log; the only record of how background work ended"""
    __tablename__ = 'generation_history'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    website_id = db.Column(db.String(36), db.ForeignKey('websites.id', ondelete='CASCADE'), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    article_title = db.Column(db.Text)
    status = db.Column(db.Enum(*HISTORY_STATUSES, name='generation_status'), nullable=False)
    pr_url = db.Column(db.String(500))
    error_message = db.Column(db.Text)
    extra = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    website = db.relationship('Website', back_populates='history')

    def to_dict(self):
        return {
            'id': self.id,
            'websiteId': self.website_id,
            'action': self.action,
            'articleTitle': self.article_title,
            'status': self.status,
            'prUrl': self.pr_url,
            'errorMessage': self.error_message,
            'metadata': self.extra,
            'createdAt': isoformat(self.created_at),
        }


def record_history(website_id, action, status, article_title=None, pr_url=None, error_message=None, extra=None):
    entry = GenerationHistory(
        website_id=website_id,
        action=action,
        status=status,
        article_title=article_title,
        pr_url=pr_url,
        error_message=error_message,
        extra=extra,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def ensure_temp_user(github_token=None):
    """The single pseudo-user every website belongs to"""
    user = db.session.execute(db.select(User).filter_by(username=TEMP_USERNAME)).scalar_one_or_none()
    if user is None:
        user = User(username=TEMP_USERNAME, password=TEMP_USERNAME, github_token=github_token)
        db.session.add(user)
        db.session.commit()
    elif github_token and user.github_token != github_token:
        user.github_token = github_token
        db.session.commit()
    return user
