#!/usr/bin/env python3

import json
import logging
import os
from functools import lru_cache, wraps
from time import sleep

from bottle import Bottle, HTTPResponse, Response, request, response, static_file

import settings
from derivatives.config import CacheConfig, S3Config
from derivatives.distributor import S3Distributor
from derivatives.errors import (
    ConfigurationError, InvalidDerivativeKey, SourceNotFound, SourceUnavailable,
    TransformFailed, UnknownPackage, UnsupportedExtension,
)
from derivatives.path_resolver import parse_filename
from derivatives.service import DerivativeService
from package_definitions import PACKAGES
from source_db import SourceDb

app = application = Bottle()

# Configure logging
level = logging.getLevelName(settings.LOG_LEVEL)
logging.basicConfig(filename=settings.LOG_FILE, level=level)

cache_config = CacheConfig.from_env()
IMAGE_ROUTE = cache_config.image_route


def log(msg):
    logging.debug(msg)


@lru_cache(maxsize=1)
def get_source_db():
    return SourceDb()


@lru_cache(maxsize=1)
def get_service():
    """Build the derivative service once per process and hook it to the source db."""
    distributor = None
    s3_config = S3Config.from_env()
    if s3_config.enabled:
        errors = s3_config.validate()
        if errors:
            logging.error(f"S3 distribution disabled: {'; '.join(errors)}")
        else:
            distributor = S3Distributor(s3_config, cache_config.images_dir)

    source_db = get_source_db()
    service = DerivativeService.from_config(
        cache_config,
        source_db,
        packages=PACKAGES,
        distributor=distributor,
    )
    source_db.add_lifecycle_hook(service.invalidation.lifecycle_hook)
    return service


def str2bool(value, raise_exc=False):
    """converts diverse string values into boolean True or False,
       replaces deprecated distutils and str2bool."""
    true_set = {'yes', 'true', 't', 'y', '1'}
    false_set = {'no', 'false', 'f', 'n', '0'}

    if isinstance(value, str):
        value = value.lower()
        if value in true_set:
            return True
        if value in false_set:
            return False

    if raise_exc:
        raise ValueError('Expected "%s"' % '", "'.join(true_set | false_set))
    return None


def text_response(status, body=''):
    response.content_type = 'text/plain; charset=utf-8'
    response.status = status
    return body


def allow_cross_origin(func):
    """Decorate a view function to allow cross domain access."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except HTTPResponse as r:
            r.set_header('Access-Control-Allow-Origin', '*')
            raise
        (result if isinstance(result, Response) else response) \
            .set_header('Access-Control-Allow-Origin', '*')
        return result
    return wrapper


@app.route(IMAGE_ROUTE + '<filename>')
@allow_cross_origin
def get_image(filename):
    """Serve the derivative {id}-{package}.{ext}, generating it on a cache miss.
    ?purge=1 purges the package's derivatives first, ?noCache=1 forces regeneration.
    """
    service = get_service()
    try:
        source_id, package_name, extension = parse_filename(filename)
    except InvalidDerivativeKey:
        log(f"Unparseable derivative name: {filename}")
        return text_response(404)

    if package_name not in service.registry:
        return text_response(400, f"pkg definition missing for {package_name}")

    if str2bool(request.query.get('purge')):
        log(f"Purge requested for {package_name}")
        service.invalidation.purge_package(package_name)

    force = bool(str2bool(request.query.get('noCache')))
    try:
        path = service.resolve(source_id, package_name, extension, force_regenerate=force)
    except (UnknownPackage, UnsupportedExtension) as e:
        return text_response(400, str(e))
    except (InvalidDerivativeKey, SourceNotFound) as e:
        log(str(e))
        return text_response(404)
    except SourceUnavailable:
        return text_response(500, "File is missing!")
    except (TransformFailed, ConfigurationError) as e:
        logging.error(f"Generating {filename} failed: {e}")
        return text_response(500, str(e))

    log(f"Serving {path}")
    return static_file(os.path.basename(path), root=os.path.dirname(path))


@app.route(IMAGE_ROUTE + '<source_id>', method='DELETE')
def delete_image(source_id):
    """Delete every cached derivative of a source. 404 if the source is unknown."""
    service = get_service()
    source = service.source_store.get_source(source_id)
    if source is None:
        return text_response(404)
    try:
        removed = service.invalidation.on_source_changed(source.id)
    except InvalidDerivativeKey:
        return text_response(404)
    log(f"Deleted {len(removed)} derivatives of {source_id}")
    return text_response(200)


@app.route('/urls/<source_id>')
@allow_cross_origin
def get_urls(source_id):
    """Return the public URL of every package for a source as JSON."""
    service = get_service()
    source = service.source_store.get_source(source_id)
    if source is None:
        return text_response(404)
    try:
        urls = service.paths.urls_for_source(source)
    except InvalidDerivativeKey:
        return text_response(404)
    response.content_type = 'application/json'
    return json.dumps(urls, indent=4, sort_keys=True)


@app.route('/')
def main_page():
    log("Hit root")
    return 'Derivative image server'


if __name__ == '__main__':
    from bottle import run
    log("Starting up....")
    source_db = get_source_db()
    while source_db.connect() is not True:
        sleep(5)
        log("Retrying db connection....")
    source_db.create_tables()
    get_service()
    log("running server...")

    run(app=application,
        host='0.0.0.0',
        port=settings.PORT,
        server=settings.SERVER,
        debug=settings.DEBUG_APP,
        reloader=settings.DEBUG_APP
    )

    log("Exiting.")
