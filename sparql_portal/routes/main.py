"""Main routes - Index, language switching, dashboard and query builder."""
from flask import (
    Blueprint, current_app, flash, g, make_response, redirect, render_template, request, url_for,
)
from flask_babel import gettext as _

from sparql_portal.backend.store import get_store
from sparql_portal.errors import PortalError
from sparql_portal.routes.auth import permission_required
from sparql_portal.services import queries

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    return render_template('index.html', user=g.auth.user)


@main_bp.route('/set_language/<lang>')
def set_language(lang):
    if lang not in current_app.config['LANGUAGES']:
        lang = current_app.config['BABEL_DEFAULT_LOCALE']
    resp = make_response(redirect(request.referrer or '/'))
    resp.set_cookie('babel_translation', lang)
    return resp


@main_bp.route('/unauthorized')
def unauthorized():
    return render_template('unauthorized.html'), 403


@main_bp.route('/dashboard')
@permission_required('dashboard:view')
def dashboard():
    user = g.auth.user
    store = get_store()
    try:
        recent = queries.recent_history(store, user['id'])
        saved = queries.recent_saved(store, user['id'])
    except PortalError:
        current_app.logger.exception('Failed to load dashboard data')
        flash(_('An error occurred. Please try again later.'), 'error')
        recent, saved = [], []
    return render_template('queries/dashboard.html', user=user, recent_queries=recent, saved_queries=saved)


@main_bp.route('/query-builder', methods=['GET', 'POST'])
@permission_required('queries:run')
def query_builder():
    user = g.auth.user
    store = get_store()
    query = ''
    outcome = None

    if request.method == 'POST':
        query = request.form.get('query', '').strip()
        title = request.form.get('title', '').strip()
        if not query:
            flash(_('Please enter a query.'), 'error')
        else:
            try:
                outcome = queries.execute_query(store, user, query)
                if request.form.get('save') and title:
                    queries.save_query(store, user['id'], title, query, request.form.get('description'))
                    flash(_('Query saved.'), 'success')
            except PortalError as exc:
                current_app.logger.exception('Query execution failed')
                flash(exc.message, 'error')

    try:
        saved = queries.recent_saved(store, user['id'], limit=20)
    except PortalError:
        saved = []
    return render_template('queries/query_builder.html', query=query, outcome=outcome, saved_queries=saved,
                           run_url=url_for('main.query_builder'))
