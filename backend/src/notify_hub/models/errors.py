class NotifyError(Exception):
    '''Base class for errors raised by the notification bus.'''


class PublishFailure(NotifyError):
    '''The broadcaster could not accept a message.'''


class SubscriptionClosed(NotifyError):
    '''Terminal signal: no further messages will be delivered on this subscription.'''


class Lagged(NotifyError):
    '''
    The subscriber fell more than the ring capacity behind the newest message.
    Not fatal: the cursor has been moved to the oldest retained message and
    the next recv() continues from there.
    '''

    def __init__(self, missed: int):
        super().__init__(f"subscriber lagged behind by {missed} messages")
        self.missed = missed
