from . import cache, clock, conf, engine, feed, gtfs, utils as u, types as t
from .conf import BoardConf


def init_board(conf=None, transport=None, now_func=None):
	'''Create FeedCache for board conf, with feed source and local clock.
		transport (httpx) and now_func (clock) can be passed to override these.'''
	if not conf: conf = BoardConf()
	source = feed.FeedSource(conf.feed_url, conf.feed_timeout, transport=transport)
	local_clock = clock.LocalClock(conf.timezone, now_func=now_func)
	return cache.FeedCache(source, conf, local_clock)
