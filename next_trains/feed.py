from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit
import io, time, zipfile, contextlib

import httpx

from . import utils as u, gtfs


class FeedFetchError(gtfs.FeedError): pass
class FeedArchiveInvalid(gtfs.FeedError): pass


class FeedSource:
	'''Callable that returns FeedArchive downloaded from url or read from local path.
		Timeout is a deadline for the whole download, so that
			stalled or trickling transfers turn into FeedFetchError as well.'''

	chunk_size = 2**20

	def __init__(self, url, timeout=120, transport=None):
		self.url, self.timeout, self.transport = url, timeout, transport
		self.log = u.get_logger('nt.feed')

	def __call__(self): return self.fetch()

	@property
	def is_local(self):
		return urlsplit(self.url).scheme in ['', 'file'] and self.transport is None

	def fetch(self):
		data = self.fetch_local() if self.is_local else self.fetch_http()
		self.log.debug('Fetched feed archive: {:,} B', len(data))
		return FeedArchive(data)

	def fetch_local(self):
		path = Path(urlsplit(self.url).path if self.url.startswith('file:') else self.url)
		try: return path.read_bytes()
		except OSError as err:
			raise FeedFetchError('Failed to read GTFS feed file: {}'.format(err)) from err

	def fetch_http(self):
		deadline = time.monotonic() + self.timeout
		client = httpx.Client( timeout=httpx.Timeout(self.timeout),
			follow_redirects=True, transport=self.transport )
		try:
			with client, client.stream('GET', self.url) as res:
				if not res.is_success:
					raise FeedFetchError('GTFS download failed: {}'.format(res.status_code))
				buff = io.BytesIO()
				for chunk in res.iter_bytes(self.chunk_size):
					buff.write(chunk)
					if time.monotonic() > deadline:
						raise FeedFetchError(
							'GTFS download timed out after {}s'.format(self.timeout) )
				return buff.getvalue()
		except httpx.HTTPError as err:
			raise FeedFetchError('GTFS download failed: [{}] {}'.format(
				err.__class__.__name__, err )) from err


class FeedArchive:
	'GTFS zip archive, with tables accessible as text streams.'

	def __init__(self, data):
		try: self.zip = zipfile.ZipFile(io.BytesIO(data))
		except zipfile.BadZipFile as err:
			raise FeedArchiveInvalid('Feed is not a valid zip archive: {}'.format(err)) from err
		self.members = dict()
		for info in self.zip.infolist(): # basenames, as some feeds have tables in a subdir
			if info.is_dir(): continue
			self.members.setdefault(PurePosixPath(info.filename).name, info.filename)
		for name in self.zip.namelist():
			if '/' not in name: self.members[name] = name

	def member(self, table):
		return self.members.get('{}.txt'.format(table))

	def require(self, *tables):
		for table in tables:
			if not self.member(table): raise gtfs.FeedTableMissing(table)

	@contextlib.contextmanager
	def open_table(self, table, optional=False):
		'''Yield text stream for specified table (name without .txt).
			Missing optional tables produce an empty iterator instead of FeedTableMissing.'''
		member = self.member(table)
		if not member:
			if not optional: raise gtfs.FeedTableMissing(table)
			yield iter(())
			return
		with self.zip.open(member) as src:
			yield io.TextIOWrapper(src, encoding='utf-8-sig', newline='')
