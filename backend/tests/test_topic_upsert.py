import httpx
import pytest
from pydantic import ValidationError
from sqlmodel import select
from linkhub import models
from linkhub.errors import NotFoundError
from linkhub.schemas import TopicDraft, UrlDraft
from linkhub.services import TopicService, UrlResolver, partition_url_drafts


def _stored_urls(session, topic_id):
    stmt = select(models.Url).where(models.Url.topic_id == topic_id).order_by(models.Url.position)
    return session.exec(stmt).all()


def _new_topic(session, titles=('a', 'b', 'c')):
    svc = TopicService(session)
    draft = TopicDraft(name='Reading', urls=[
        UrlDraft(title=t, url=f'https://example.com/{t}', tags=['docs']) for t in titles
    ])
    return svc, svc.upsert(draft)


def test_create_links_every_new_url(session):
    svc, topic_id = _new_topic(session)
    rows = _stored_urls(session, topic_id)
    assert len(rows) == 3
    assert all(r.topic_id == topic_id for r in rows)
    assert [r.title for r in rows] == ['a', 'b', 'c']


def test_round_trip_returns_what_was_submitted(session):
    svc = TopicService(session)
    draft = TopicDraft(name='  Python  ', description='', urls=[
        UrlDraft(key='row-1', title='Docs', url='https://docs.python.org', icon='https://python.org/favicon.ico',
                 description='reference', tags=['python', 'docs']),
        UrlDraft(key='row-2', title='No link', url=''),
    ])
    topic = svc.get_topic(svc.upsert(draft))
    assert topic.name == 'Python'
    assert topic.description is None
    got = [(u.title, u.url, u.icon, u.description, [t.name for t in u.tags]) for u in topic.urls]
    assert got == [
        ('Docs', 'https://docs.python.org', 'https://python.org/favicon.ico', 'reference', ['python', 'docs']),
        ('No link', None, None, None, []),
    ]


def test_update_creates_updates_and_deletes(session):
    svc, topic_id = _new_topic(session)
    a, b, c = _stored_urls(session, topic_id)
    b_id = b.id
    draft = TopicDraft(id=topic_id, name='Reading list', urls=[
        UrlDraft(id=b_id, title='b2', url='https://example.com/b2'),
        UrlDraft(title='d', url='https://example.com/d', tags=['new']),
    ])
    assert svc.upsert(draft) == topic_id
    rows = _stored_urls(session, topic_id)
    assert [r.title for r in rows] == ['b2', 'd']
    assert rows[0].id == b_id
    assert rows[0].tags == []
    assert [t.name for t in rows[1].tags] == ['new']
    assert svc.get_topic(topic_id).name == 'Reading list'


def test_reorder_keeps_identities(session):
    svc, topic_id = _new_topic(session)
    a, b, c = _stored_urls(session, topic_id)
    ids = [c.id, a.id, b.id]
    draft = TopicDraft(id=topic_id, name='Reading', urls=[
        UrlDraft(id=c.id, title='c'), UrlDraft(id=a.id, title='a'), UrlDraft(id=b.id, title='b'),
    ])
    svc.upsert(draft)
    assert [r.id for r in _stored_urls(session, topic_id)] == ids


def test_unknown_url_id_leaves_topic_untouched(session):
    svc, topic_id = _new_topic(session)
    before = [(r.id, r.title) for r in _stored_urls(session, topic_id)]
    draft = TopicDraft(id=topic_id, name='Changed', urls=[UrlDraft(id=9999, title='ghost')])
    with pytest.raises(NotFoundError):
        svc.upsert(draft)
    assert [(r.id, r.title) for r in _stored_urls(session, topic_id)] == before
    assert svc.get_topic(topic_id).name == 'Reading'


def test_failed_commit_rolls_back_everything(session, monkeypatch):
    svc, topic_id = _new_topic(session)
    before = [(r.id, r.title) for r in _stored_urls(session, topic_id)]
    first = before[0][0]

    def boom():
        raise RuntimeError('disk full')

    monkeypatch.setattr(session, 'commit', boom)
    draft = TopicDraft(id=topic_id, name='Changed', urls=[
        UrlDraft(id=first, title='renamed'), UrlDraft(title='extra'),
    ])
    with pytest.raises(RuntimeError):
        svc.upsert(draft)
    monkeypatch.undo()
    assert [(r.id, r.title) for r in _stored_urls(session, topic_id)] == before
    assert svc.get_topic(topic_id).name == 'Reading'


def test_missing_topic_is_not_found(session):
    with pytest.raises(NotFoundError):
        TopicService(session).upsert(TopicDraft(id=123, name='x'))


def test_url_ids_rejected_on_create(session):
    with pytest.raises(ValueError):
        TopicService(session).upsert(TopicDraft(name='x', urls=[UrlDraft(id=1, title='a')]))


def test_draft_validation():
    with pytest.raises(ValidationError):
        TopicDraft(name='   ')
    with pytest.raises(ValidationError):
        TopicDraft(name='x', urls=[UrlDraft(id=1, title='a'), UrlDraft(id=1, title='b')])
    with pytest.raises(ValidationError):
        TopicDraft(name='x', urls=[UrlDraft(key='k', title='a'), UrlDraft(key='k', title='b')])
    with pytest.raises(ValidationError):
        UrlDraft(title='a', url='not a url')
    assert UrlDraft(title='a', tags=[' x ', 'x', '']).tags == ['x']


def test_tags_are_shared_between_urls(session):
    _new_topic(session)
    names = session.exec(select(models.Tag.name)).all()
    assert names == ['docs']


def test_partition_url_drafts():
    drafts = [UrlDraft(id=2, title='b'), UrlDraft(title='new'), UrlDraft(id=3, title='c')]
    changes = partition_url_drafts([1, 2, 3, 4], drafts)
    assert [d.title for d in changes.create] == ['new']
    assert [d.id for d in changes.update] == [2, 3]
    assert changes.delete == [1, 4]
    with pytest.raises(NotFoundError):
        partition_url_drafts([1], [UrlDraft(id=5, title='x')])


def test_list_and_delete_topics(session):
    svc, first_id = _new_topic(session)
    second_id = svc.upsert(TopicDraft(name='Empty'))
    listed = svc.list_topics()
    assert [(t.id, t.url_count) for t in listed] == [(second_id, 0), (first_id, 3)]
    svc.delete_topic(first_id)
    assert _stored_urls(session, first_id) == []
    assert session.exec(select(models.UrlTagLink)).all() == []
    with pytest.raises(NotFoundError):
        svc.delete_topic(first_id)


def test_batch_create(session):
    svc = TopicService(session)
    topic_id = svc.batch_create('Batch', 'https://a.dev\n\nA title | https://b.dev\n')
    rows = _stored_urls(session, topic_id)
    assert [(r.title, r.url) for r in rows] == [('https://a.dev', 'https://a.dev'), ('A title', 'https://b.dev')]
    with pytest.raises(ValueError):
        svc.batch_create('Batch', '\n  \n')


def test_batch_create_fills_titles_from_pages(session):
    def handler(request):
        if request.url.host == 'gone.dev':
            return httpx.Response(503)
        return httpx.Response(200, html='<title>A dev</title><meta name="description" content="about a">')

    resolver = UrlResolver(httpx.Client(transport=httpx.MockTransport(handler)))
    svc = TopicService(session, resolver=resolver)
    topic_id = svc.batch_create('Batch', 'https://a.dev\nKept | https://b.dev\nhttps://gone.dev\n')
    rows = _stored_urls(session, topic_id)
    assert [(r.title, r.url) for r in rows] == [
        ('A dev', 'https://a.dev'), ('Kept', 'https://b.dev'), ('https://gone.dev', 'https://gone.dev'),
    ]
    assert rows[0].description == 'about a'
    assert rows[0].icon == 'https://a.dev/favicon.ico'
    assert rows[1].icon is None


def test_update_reorders_creates_and_deletes_in_one_save(session):
    svc, topic_id = _new_topic(session)
    a_id, b_id, c_id = [r.id for r in _stored_urls(session, topic_id)]
    svc.upsert(TopicDraft(id=topic_id, name='Reading', urls=[
        UrlDraft(id=c_id, title='c2', url='https://example.com/c'),
        UrlDraft(title='d', url='https://example.com/d'),
        UrlDraft(id=a_id, title='a', url='https://example.com/a'),
    ]))
    rows = _stored_urls(session, topic_id)
    assert [r.title for r in rows] == ['c2', 'd', 'a']
    assert [r.position for r in rows] == [0, 1, 2]
    assert rows[0].id == c_id and rows[2].id == a_id
    assert session.get(models.Url, b_id) is None
