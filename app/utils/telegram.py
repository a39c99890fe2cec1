"""
Telegram bot notifications for the operations channel.

Fire-and-forget: every public function returns a bool and never raises,
so a Telegram outage cannot fail a billing request.
"""
import html
import logging

import requests
from flask import current_app

from app.utils.dates import utcnow, to_service_time

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = 'https://api.telegram.org'


def send_telegram_notification(message):
    """Send an HTML message to the configured chat.

    Returns:
        True if Telegram accepted the message, False otherwise
        (including when the bot is not configured).
    """
    bot_token = current_app.config.get('TELEGRAM_BOT_TOKEN')
    chat_id = current_app.config.get('TELEGRAM_CHAT_ID')

    if not bot_token or not chat_id:
        logger.debug('Telegram notification skipped: bot token or chat id not configured')
        return False

    try:
        response = requests.post(
            f'{TELEGRAM_API_BASE}/bot{bot_token}/sendMessage',
            json={
                'chat_id': chat_id,
                'text': message,
                'parse_mode': 'HTML',
            },
            timeout=10,
        )
    except requests.RequestException as e:
        logger.warning('Failed to send Telegram notification: %s', e)
        return False

    if not response.ok:
        logger.warning('Telegram API error %s: %s', response.status_code, response.text[:200])
        return False

    return True


def _stamp():
    return to_service_time(utcnow()).strftime('%Y-%m-%d %H:%M')


def notify_coupon_redeemed(user, coupon):
    message = (
        '🎟 <b>쿠폰 등록</b>\n\n'
        f'👤 <b>사용자:</b> {html.escape(user.display_name)} ({html.escape(user.email)})\n'
        f'📦 <b>플랜:</b> {coupon.plan.upper()} {coupon.duration_days}일\n'
        f'🔑 <b>코드:</b> <code>{html.escape(coupon.code)}</code>\n\n'
        f'⏰ {_stamp()}'
    )
    return send_telegram_notification(message)


def notify_renewal_succeeded(user, plan, amount, was_upgrade):
    title = '플랜 업그레이드 결제' if was_upgrade else '정기결제 완료'
    message = (
        f'💳 <b>{title}</b>\n\n'
        f'👤 <b>사용자:</b> {html.escape(user.display_name)} ({html.escape(user.email)})\n'
        f'📦 <b>플랜:</b> {plan.upper()}\n'
        f'💰 <b>금액:</b> {amount:,}원\n\n'
        f'⏰ {_stamp()}'
    )
    return send_telegram_notification(message)


def notify_renewal_failed(user, plan, reason):
    message = (
        '⚠️ <b>정기결제 실패</b>\n\n'
        f'👤 <b>사용자:</b> {html.escape(user.display_name)} ({html.escape(user.email)})\n'
        f'📦 <b>플랜:</b> {plan.upper()}\n'
        f'❌ <b>사유:</b> {html.escape(reason or "알 수 없음")}\n\n'
        f'⏰ {_stamp()}'
    )
    return send_telegram_notification(message)


def notify_downgrade(user, previous_plan):
    message = (
        '↘️ <b>Free 플랜 다운그레이드</b>\n\n'
        f'👤 <b>사용자:</b> {html.escape(user.display_name)} ({html.escape(user.email)})\n'
        f'📦 <b>이전 플랜:</b> {previous_plan.upper()}\n\n'
        f'⏰ {_stamp()}'
    )
    return send_telegram_notification(message)
